# ABOUTME: Scores students and classes across the six Bloom taxonomy levels.
# ABOUTME: Levels without attempts stay "no data" (None) and never count as a 0% weakness.

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd
from loguru import logger

from src.common.numeric import percentage, round_half_up

from .schemas import (
    BLOOM_LEVELS_ORDERED,
    AttemptRecord,
    BloomDistributionEntry,
    BloomLevel,
    BloomScore,
    ClassBloomSummary,
    StudentBloomProfile,
)

BLOOM_LABELS_HE: Dict[BloomLevel, str] = {
    BloomLevel.KNOWLEDGE: "ידע",
    BloomLevel.COMPREHENSION: "הבנה",
    BloomLevel.APPLICATION: "יישום",
    BloomLevel.ANALYSIS: "ניתוח",
    BloomLevel.SYNTHESIS: "יצירה",
    BloomLevel.EVALUATION: "הערכה",
}

_BLOOM_LABELS_EN: Dict[str, BloomLevel] = {
    "remember": BloomLevel.KNOWLEDGE,
    "understand": BloomLevel.COMPREHENSION,
    "apply": BloomLevel.APPLICATION,
    "analyze": BloomLevel.ANALYSIS,
    "create": BloomLevel.SYNTHESIS,
    "evaluate": BloomLevel.EVALUATION,
}

_QUESTION_TYPE_TO_BLOOM: Dict[str, BloomLevel] = {
    "multiple-choice": BloomLevel.KNOWLEDGE,
    "multiple_choice": BloomLevel.KNOWLEDGE,
    "true_false_speed": BloomLevel.KNOWLEDGE,
    "true-false": BloomLevel.KNOWLEDGE,
    "fill_in_blanks": BloomLevel.COMPREHENSION,
    "fill-in-blanks": BloomLevel.COMPREHENSION,
    "ordering": BloomLevel.APPLICATION,
    "categorization": BloomLevel.APPLICATION,
    "drag_and_drop": BloomLevel.APPLICATION,
    "drag-and-drop": BloomLevel.APPLICATION,
    "hotspot": BloomLevel.APPLICATION,
    "matching": BloomLevel.APPLICATION,
    "open-question": BloomLevel.ANALYSIS,
    "open_question": BloomLevel.ANALYSIS,
    "interactive-chat": BloomLevel.ANALYSIS,
    "analysis": BloomLevel.ANALYSIS,
    "mindmap": BloomLevel.SYNTHESIS,
    "synthesis": BloomLevel.SYNTHESIS,
    "essay": BloomLevel.SYNTHESIS,
    "evaluation": BloomLevel.EVALUATION,
    "peer-review": BloomLevel.EVALUATION,
}

BLOOM_COLORS = {
    "excellent": "#059669",
    "good": "#22c55e",
    "medium": "#f59e0b",
    "weak": "#ef4444",
}


def normalize_bloom_level(label: Optional[str]) -> Optional[BloomLevel]:
    """Resolve a level key, an English verb label, or a Hebrew label to a BloomLevel."""
    if label is None:
        return None
    if isinstance(label, BloomLevel):
        return label
    text = str(label).strip()
    if not text:
        return None
    lowered = text.lower()
    for level in BloomLevel:
        if level.value == lowered:
            return level
    if lowered in _BLOOM_LABELS_EN:
        return _BLOOM_LABELS_EN[lowered]
    for level, hebrew in BLOOM_LABELS_HE.items():
        if hebrew == text:
            return level
    return None


def infer_bloom_from_question_type(question_type: Optional[str]) -> Optional[BloomLevel]:
    if not question_type:
        return None
    return _QUESTION_TYPE_TO_BLOOM.get(str(question_type).strip().lower())


def resolve_attempt_level(attempt: AttemptRecord) -> Optional[BloomLevel]:
    """Explicit tag first, then the level implied by the question type."""
    return normalize_bloom_level(attempt.bloom_level) or infer_bloom_from_question_type(attempt.question_type)


def _pick_extreme(scores: Dict[BloomLevel, BloomScore], weakest: bool) -> Optional[BloomLevel]:
    best: Optional[BloomScore] = None
    for level in BLOOM_LEVELS_ORDERED:
        score = scores[level]
        if score.percentage is None:
            continue
        if best is None:
            best = score
        elif weakest and score.percentage < best.percentage:
            best = score
        elif not weakest and score.percentage > best.percentage:
            best = score
    return best.level if best else None


def analyze_student_bloom(student_id: str, attempts: Iterable[AttemptRecord]) -> StudentBloomProfile:
    """
    Build a per-level profile for one student.

    percentage is round(100 * correct / total), or None when the level has no
    attempts. Weakest/strongest consider only levels with data; ties resolve to
    the lower level in taxonomy order.
    """

    correct = {level: 0 for level in BLOOM_LEVELS_ORDERED}
    total = {level: 0 for level in BLOOM_LEVELS_ORDERED}
    skipped = 0
    for attempt in attempts:
        level = resolve_attempt_level(attempt)
        if level is None:
            skipped += 1
            continue
        total[level] += 1
        if attempt.correct:
            correct[level] += 1
    if skipped:
        logger.debug("Skipped {} attempts without a resolvable Bloom level for {}", skipped, student_id)

    scores = {
        level: BloomScore(
            level=level,
            correct=correct[level],
            total=total[level],
            percentage=percentage(correct[level], total[level]) if total[level] else None,
        )
        for level in BLOOM_LEVELS_ORDERED
    }
    all_total = sum(total.values())
    overall = percentage(sum(correct.values()), all_total) if all_total else None

    return StudentBloomProfile(
        student_id=student_id,
        scores=scores,
        overall_score=overall,
        weakest_level=_pick_extreme(scores, weakest=True),
        strongest_level=_pick_extreme(scores, weakest=False),
    )


def analyze_class_bloom(profiles: Sequence[StudentBloomProfile]) -> ClassBloomSummary:
    """
    Average per-student percentages per level.

    A student with no attempts at a level is left out of that level's average.
    The class distribution also reports the pooled success rate and how many
    questions and students fed each level.
    """

    average_by_level: Dict[BloomLevel, Optional[int]] = {}
    distribution: List[BloomDistributionEntry] = []
    for level in BLOOM_LEVELS_ORDERED:
        with_data = [p.scores[level] for p in profiles if level in p.scores and p.scores[level].has_data]
        if with_data:
            mean_pct = sum(s.percentage for s in with_data) / len(with_data)
            average_by_level[level] = round_half_up(mean_pct)
        else:
            average_by_level[level] = None

        question_count = sum(s.total for s in with_data)
        pooled_correct = sum(s.correct for s in with_data)
        distribution.append(
            BloomDistributionEntry(
                level=level,
                success_rate=percentage(pooled_correct, question_count) if question_count else None,
                question_count=question_count,
                student_count=len(with_data),
            )
        )

    present = [(level, value) for level, value in average_by_level.items() if value is not None]
    common_weakness = min(present, key=lambda pair: pair[1])[0] if present else None
    common_strength = max(present, key=lambda pair: pair[1])[0] if present else None

    return ClassBloomSummary(
        average_by_level=average_by_level,
        common_weakness=common_weakness,
        common_strength=common_strength,
        distribution=distribution,
        student_count=len(profiles),
    )


def bloom_color(pct: Optional[int]) -> Optional[str]:
    """Display color for a level percentage; None for "no data"."""
    if pct is None:
        return None
    if pct >= 80:
        return BLOOM_COLORS["excellent"]
    if pct >= 60:
        return BLOOM_COLORS["good"]
    if pct >= 40:
        return BLOOM_COLORS["medium"]
    return BLOOM_COLORS["weak"]


def radar_data(
    profile: StudentBloomProfile,
    class_summary: Optional[ClassBloomSummary] = None,
) -> List[Dict]:
    rows = []
    for level in BLOOM_LEVELS_ORDERED:
        score = profile.scores.get(level)
        row = {
            "level": level.value,
            "label": BLOOM_LABELS_HE[level],
            "student": score.percentage if score else None,
        }
        if class_summary is not None:
            row["class_average"] = class_summary.average_by_level.get(level)
        rows.append(row)
    return rows


def heatmap_frame(profiles: Sequence[StudentBloomProfile]) -> pd.DataFrame:
    """Students x levels percentage matrix; missing data stays NaN."""

    columns = [level.value for level in BLOOM_LEVELS_ORDERED]
    if not profiles:
        return pd.DataFrame(columns=columns)
    data = {
        p.student_id: {
            level.value: (p.scores[level].percentage if level in p.scores else None) for level in BLOOM_LEVELS_ORDERED
        }
        for p in profiles
    }
    frame = pd.DataFrame.from_dict(data, orient="index", columns=columns)
    frame.index.name = "student_id"
    return frame.astype(float)
