# ABOUTME: Turns the struggling / average / advanced grouping into differentiated remediation plans.
# ABOUTME: Each plan names a target variant, focus topics, and weakest Bloom level, and can prompt the generator.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from src.content.generator import ContentGenerator, sanitize_for_prompt
from src.content.parsing import ParseResult, parse_question

from .bloom import BLOOM_LABELS_HE, analyze_class_bloom
from .class_aggregation import VARIANT_BY_GROUP, group_students, topic_distribution
from .schemas import VARIANT_LABELS_HE, BloomLevel, StudentAnalytics, Variant


@dataclass
class RemediationPlan:
    group: str
    variant: Variant
    student_ids: List[str]
    focus_topics: List[str] = field(default_factory=list)
    focus_bloom_level: Optional[BloomLevel] = None
    reason: str = ""


def build_remediation_plans(students: Sequence[StudentAnalytics], max_topics: int = 3) -> List[RemediationPlan]:
    """
    One plan per non-empty group.

    Focus topics are the group's lowest-mastery topics by group mean; the Bloom
    focus is the group's common weakness, or None when no member has Bloom data.
    """

    by_id = {s.student_id: s for s in students}
    plans: List[RemediationPlan] = []
    for group, student_ids in group_students(students).items():
        if not student_ids:
            continue
        members = [by_id[sid] for sid in student_ids]
        topics = sorted(topic_distribution(members).values(), key=lambda t: (t.mean, t.topic))
        focus_topics = [t.topic for t in topics[:max_topics]]

        profiles = [m.bloom for m in members if m.bloom is not None]
        bloom_focus = analyze_class_bloom(profiles).common_weakness if profiles else None

        variant = VARIANT_BY_GROUP[group]
        reason = f"{len(members)} {group} student(s) get {variant.value} material"
        if focus_topics:
            lowest = topics[0]
            reason += f"; weakest topic {lowest.topic} at mean mastery {lowest.mean:.2f}"
        if bloom_focus is not None:
            reason += f"; weakest Bloom level {bloom_focus.value}"

        plans.append(
            RemediationPlan(
                group=group,
                variant=variant,
                student_ids=list(student_ids),
                focus_topics=focus_topics,
                focus_bloom_level=bloom_focus,
                reason=reason,
            )
        )
    return plans


def build_remediation_prompt(plan: RemediationPlan, subject: str = "") -> str:
    safe_subject = sanitize_for_prompt(subject, max_length=50) if subject else "the current course"
    topics = ", ".join(sanitize_for_prompt(t, max_length=80) for t in plan.focus_topics) or "the lesson topics"
    bloom_line = ""
    if plan.focus_bloom_level is not None:
        level = plan.focus_bloom_level
        bloom_line = f"- Target Bloom level: {level.value} ({BLOOM_LABELS_HE[level]})\n"

    return f"""You are preparing differentiated practice for a group of students in {safe_subject}.

## Group
- Group: {plan.group} ({len(plan.student_ids)} students)
- Variant: {plan.variant.value} ({VARIANT_LABELS_HE[plan.variant]})
- Focus topics: {topics}
{bloom_line}
## Your Task
Write one practice question in Hebrew suited to the variant:
comprehension rebuilds the basic idea step by step, application practices it on a standard case,
enrichment extends it to an unfamiliar or multi-step case.

Respond with JSON: {{"question": "...", "model_answer": "...", "hints": ["...", "..."]}}
"""


def generate_remediation_content(
    plan: RemediationPlan,
    generator: ContentGenerator,
    subject: str = "",
) -> ParseResult:
    """Ask the generator for one practice item; parse failures come back as ParseError."""

    text = generator.generate(build_remediation_prompt(plan, subject))
    result = parse_question(text)
    if not result.ok:
        logger.warning("Remediation content for {} group failed to parse: {}", plan.group, result.reason)
    return result
