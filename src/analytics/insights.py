# ABOUTME: Generates a short insight and recommendation for a student's analytics bundle.
# ABOUTME: Uses templates by default and optionally an LLM, falling back to templates on any failure.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ValidationError

from src.common.errors import AnalyticsError
from src.content.generator import ContentGenerator, sanitize_for_prompt
from src.content.parsing import extract_json

from .mastery_aggregation import overall_mastery
from .schemas import MotivationScore, StudentAnalytics


@dataclass
class StudentInsight:
    student_id: str
    overall_mastery: Optional[float]
    weakest_topic: Optional[str]
    insight: str
    recommendation: str
    confidence: str
    source: str  # "template" or "llm"


class _InsightPayload(BaseModel):
    insight: str
    recommendation: str


def _confidence(student: StudentAnalytics) -> str:
    count = student.performance.total_questions if student.performance else 0
    if count < 5:
        return "low"
    if count < 20:
        return "medium"
    return "high"


def _weakest_topic(student: StudentAnalytics) -> Optional[str]:
    if not student.mastery:
        return None
    return min(sorted(student.mastery), key=lambda topic: student.mastery[topic])


def template_insight(student: StudentAnalytics, motivation: Optional[MotivationScore] = None) -> Tuple[str, str]:
    """
    Template-based insight and recommendation.

    This is the fallback when no generator is configured or the generator fails.
    """
    mastery = overall_mastery(student.mastery)
    if mastery is None:
        return "Not enough graded attempts yet.", "Complete a few more questions to unlock a recommendation."

    weakest = _weakest_topic(student)
    bloom_gap = student.bloom.weakest_level.value if student.bloom and student.bloom.weakest_level else None
    hint_heavy = student.performance is not None and student.performance.hint_dependency > 0.4

    if mastery < 0.5:
        insight = f"Mastery is low overall, weakest in {weakest}."
        rec = f"Review the basics of {weakest} with comprehension-level material"
        rec += f" and practice {bloom_gap} questions." if bloom_gap else "."
    elif mastery < 0.8:
        insight = f"Solid progress with gaps in {weakest}."
        rec = f"Practice more application questions on {weakest}."
    else:
        insight = "Strong mastery across topics."
        rec = "Move on to enrichment tasks and more challenging sources."

    if hint_heavy:
        insight += " Relies on hints often."
        rec += " Try each question once before opening a hint."
    if motivation is not None and motivation.level == "low":
        rec += " Short, achievable tasks can help rebuild momentum."
    return insight, rec


def build_insight_prompt(student: StudentAnalytics, motivation: Optional[MotivationScore] = None) -> str:
    safe_name = sanitize_for_prompt(student.name or student.student_id, max_length=50)
    mastery_lines = "\n".join(
        f"  - {sanitize_for_prompt(topic, max_length=80)}: {value:.0%}" for topic, value in sorted(student.mastery.items())
    )
    perf = student.performance
    perf_line = (
        f"- Accuracy: {perf.accuracy:.0%}, hint use: {perf.hint_dependency:.0%}, questions: {perf.total_questions}"
        if perf
        else "- No graded attempts yet"
    )
    bloom_line = ""
    if student.bloom and student.bloom.has_data:
        weakest = student.bloom.weakest_level.value if student.bloom.weakest_level else "unknown"
        strongest = student.bloom.strongest_level.value if student.bloom.strongest_level else "unknown"
        bloom_line = f"- Bloom: weakest {weakest}, strongest {strongest}\n"
    motivation_line = f"- Motivation: {motivation.level} ({motivation.score}/100)\n" if motivation else ""

    return f"""You are an educational analytics assistant writing feedback for a Bagrut student.

## Student Context
- Student: {safe_name}
- Risk level: {student.risk_level.value if student.risk_level else "insufficient data"}
{perf_line}
{bloom_line}{motivation_line}- Topic mastery:
{mastery_lines or "  - none"}

## Your Task
Write a 1-2 sentence insight about where the student stands and one specific,
actionable recommendation. Be encouraging but honest.

Respond with JSON: {{"insight": "...", "recommendation": "..."}}
"""


def generate_student_insight(
    student: StudentAnalytics,
    motivation: Optional[MotivationScore] = None,
    generator: Optional[ContentGenerator] = None,
) -> StudentInsight:
    insight, recommendation = template_insight(student, motivation)
    source = "template"

    if generator is not None and student.mastery:
        try:
            text = generator.generate(build_insight_prompt(student, motivation))
            payload = extract_json(text)
            if payload is None:
                raise ValueError("no JSON in generator response")
            parsed = _InsightPayload.model_validate_json(payload)
            insight, recommendation, source = parsed.insight, parsed.recommendation, "llm"
        except (AnalyticsError, ValidationError, ValueError) as exc:
            logger.warning("Falling back to template insight for {}: {}", student.student_id, exc)

    return StudentInsight(
        student_id=student.student_id,
        overall_mastery=overall_mastery(student.mastery),
        weakest_topic=_weakest_topic(student),
        insight=insight,
        recommendation=recommendation,
        confidence=_confidence(student),
        source=source,
    )


def format_insight(result: StudentInsight) -> str:
    """Render an insight as a human-readable block."""
    mastery = "n/a" if result.overall_mastery is None else f"{result.overall_mastery:.2f}"
    lines = [
        "━" * 60,
        f"Student: {result.student_id}",
        f"Mastery: {mastery} (confidence: {result.confidence})",
        "",
        f"Insight: {result.insight}",
        f"Recommendation: {result.recommendation}",
        "━" * 60,
    ]
    return "\n".join(lines)
