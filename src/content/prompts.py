# ABOUTME: Bagrut subject catalog, question-type templates, and the question generation prompt.
# ABOUTME: Also builds the default grading rubric used when a generated question ships without one.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .generator import sanitize_for_prompt

QUESTION_TYPES = ["open", "multiple-choice", "source-analysis", "essay", "fill-in-blanks", "matching"]

# Cycled per chapter: 3 open, 2 MC, 2 source analysis, 1 essay, 1 fill-in, 1 matching.
QUESTION_TYPE_DISTRIBUTION = [
    "open",
    "open",
    "open",
    "multiple-choice",
    "multiple-choice",
    "source-analysis",
    "source-analysis",
    "essay",
    "fill-in-blanks",
    "matching",
]

# Points for difficulty 1 / 2 / 3.
POINTS_BY_TYPE: Dict[str, List[int]] = {
    "open": [10, 15, 20],
    "multiple-choice": [5, 8, 10],
    "source-analysis": [15, 20, 25],
    "essay": [20, 25, 30],
    "fill-in-blanks": [8, 10, 12],
    "matching": [8, 10, 12],
}

RUBRIC_TEMPLATES: Dict[str, List[str]] = {
    "open": ["הבנת הנושא", "דיוק בתשובה", "ניסוח ובהירות"],
    "multiple-choice": [],
    "source-analysis": ["הבנת המקור", "ניתוח וקישור", "יישום"],
    "essay": ["תוכן ותזה", "מבנה וארגון", "שפה וסגנון", "טיעון והוכחות"],
    "fill-in-blanks": ["דיוק", "הבנה"],
    "matching": ["דיוק בהתאמות"],
}

TYPE_DESCRIPTIONS: Dict[str, str] = {
    "open": "Open question requiring a detailed written answer",
    "multiple-choice": "Question with four answer options, exactly one correct",
    "source-analysis": "Analysis of a source passage with 2-3 sub-questions",
    "essay": "Extended essay answer with a required structure and length",
    "fill-in-blanks": "Text with clearly marked blanks to complete",
    "matching": "Match items between two columns",
}

DIFFICULTY_GUIDELINES: Dict[int, str] = {
    1: "Easy: remember and understand, simple language",
    2: "Medium: apply and analyze, standard subject terminology",
    3: "Hard: evaluate and create, multi-layered argument",
}


@dataclass(frozen=True)
class SubjectInfo:
    key: str
    hebrew_name: str
    chapters: List[str]


SUBJECTS: Dict[str, SubjectInfo] = {
    "civics": SubjectInfo(
        key="civics",
        hebrew_name="אזרחות",
        chapters=[
            "מבוא - מהי מדינה ומה תפקידיה",
            "ישראל כמדינה יהודית - סמלים, חוקים וזהות",
            "עקרונות הדמוקרטיה - שלטון העם והכרעת הרוב",
            "זכויות האדם והאזרח - טבעיות ואזרחיות",
            "הרשות המחוקקת - הכנסת",
            "עקרון הפרדת הרשויות ואיזונים",
        ],
    ),
    "history": SubjectInfo(
        key="history",
        hebrew_name="היסטוריה",
        chapters=[
            "לאומיות ותנועות לאומיות באירופה",
            "הציונות - רעיון ותנועה",
            "מלחמת העולם השנייה והשואה",
            "הקמת מדינת ישראל",
        ],
    ),
    "literature": SubjectInfo(
        key="literature",
        hebrew_name="ספרות",
        chapters=[
            "סיפור עברי מהמחצית הראשונה של המאה ה-20",
            "סיפורים מתורגמים",
            "שירה עברית חדשה",
        ],
    ),
    "bible": SubjectInfo(
        key="bible",
        hebrew_name='תנ"ך',
        chapters=[
            "ספר בראשית - סיפורי האבות",
            "ספר שמואל - ראשית המלוכה",
            "נבואה - עמוס וישעיהו",
        ],
    ),
}


def topics_from_chapter(chapter: str) -> List[str]:
    """Split a "chapter - detail" title into its parts; otherwise the chapter is the only topic."""
    parts = [part.strip() for part in chapter.split(" - ") if part.strip()]
    return parts if len(parts) > 1 else [chapter]


def points_for(question_type: str, difficulty: int) -> int:
    options = POINTS_BY_TYPE[question_type]
    if 1 <= difficulty <= len(options):
        return options[difficulty - 1]
    return options[1]


def default_rubric(question_type: str, points: int) -> List[Dict]:
    """
    Split points evenly across the type's criteria, giving the remainder to the
    last criterion. Each criterion has full / partial (60%) / zero levels.
    """

    criteria = RUBRIC_TEMPLATES.get(question_type)
    if criteria is None:
        criteria = ["תשובה"]
    if not criteria:
        return []

    per_criterion = points // len(criteria)
    rubric = []
    for index, criterion in enumerate(criteria):
        is_last = index == len(criteria) - 1
        rubric.append(
            {
                "criterion": criterion,
                "max_points": points - per_criterion * (len(criteria) - 1) if is_last else per_criterion,
                "levels": [
                    {"points": per_criterion, "description": "תשובה מלאה ומדויקת"},
                    {"points": int(per_criterion * 0.6), "description": "תשובה חלקית"},
                    {"points": 0, "description": "לא ענה או תשובה שגויה"},
                ],
            }
        )
    return rubric


def build_question_prompt(
    subject: str,
    chapter: str,
    topic: str,
    question_type: str,
    difficulty: int,
    points: int,
) -> str:
    info = SUBJECTS[subject]
    safe_chapter = sanitize_for_prompt(chapter, max_length=200)
    safe_topic = sanitize_for_prompt(topic, max_length=200)

    return f"""You are an expert author of Israeli Bagrut exam questions in {info.hebrew_name}.
Write one original practice question in Hebrew in the style of the Ministry of Education exams.

## Question details
- Subject: {info.hebrew_name}
- Chapter: {safe_chapter}
- Topic: {safe_topic}
- Question type: {TYPE_DESCRIPTIONS[question_type]}
- Difficulty: {DIFFICULTY_GUIDELINES.get(difficulty, DIFFICULTY_GUIDELINES[2])}
- Points: {points}

## Rules
1. Use clear, standard Hebrew.
2. The model answer must be complete and accurate.
3. Hints go from general to specific.
4. Do not copy questions from past exams.

Respond with JSON in this format:
```json
{{
    "question": "full question text",
    "source_text": null,
    "sub_questions": [{{"label": "א", "question": "...", "points": 5, "model_answer": "...", "keywords": []}}],
    "options": ["...", "...", "...", "..."],
    "correct_option_index": 0,
    "model_answer": "full model answer",
    "rubric": [{{"criterion": "...", "max_points": 5, "levels": [{{"points": 5, "description": "..."}}]}}],
    "keywords": [],
    "common_mistakes": [],
    "hints": ["general hint", "specific hint", "near-answer hint"],
    "time_estimate": 10
}}
```
"""
