# ABOUTME: Rolls per-student analytics up into class summaries, heatmaps, and comparisons.
# ABOUTME: Splits a roster into struggling, average, and advanced groups for differentiated remediation.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from src.common.numeric import percentage

from .bloom import analyze_class_bloom
from .mastery_aggregation import overall_mastery
from .schemas import (
    ClassBloomSummary,
    NodeStatus,
    RiskLevel,
    StudentAnalytics,
    Variant,
)

GROUP_STRUGGLING = "struggling"
GROUP_AVERAGE = "average"
GROUP_ADVANCED = "advanced"

GROUP_BY_RISK: Dict[RiskLevel, str] = {
    RiskLevel.HIGH: GROUP_STRUGGLING,
    RiskLevel.MEDIUM: GROUP_AVERAGE,
    RiskLevel.LOW: GROUP_ADVANCED,
}

VARIANT_BY_GROUP: Dict[str, Variant] = {
    GROUP_STRUGGLING: Variant.COMPREHENSION,
    GROUP_AVERAGE: Variant.APPLICATION,
    GROUP_ADVANCED: Variant.ENRICHMENT,
}


@dataclass(frozen=True)
class TopicDistribution:
    topic: str
    mean: float
    minimum: float
    maximum: float
    student_count: int


@dataclass
class ClassSummary:
    student_count: int
    average_accuracy: Optional[float]
    average_hint_dependency: Optional[float]
    topics: Dict[str, TopicDistribution]
    weakest_topic: Optional[str]
    strongest_topic: Optional[str]
    risk_counts: Dict[RiskLevel, int]
    completion_rate: Optional[int]
    bloom: Optional[ClassBloomSummary] = None
    error_patterns: Dict[str, int] = field(default_factory=dict)
    insufficient_data: List[str] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.average_accuracy is not None or bool(self.topics)


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def topic_distribution(students: Sequence[StudentAnalytics]) -> Dict[str, TopicDistribution]:
    by_topic: Dict[str, List[float]] = {}
    for student in students:
        for topic, value in student.mastery.items():
            by_topic.setdefault(topic, []).append(value)
    return {
        topic: TopicDistribution(
            topic=topic,
            mean=sum(values) / len(values),
            minimum=min(values),
            maximum=max(values),
            student_count=len(values),
        )
        for topic, values in sorted(by_topic.items())
    }


def summarize_class(students: Sequence[StudentAnalytics]) -> ClassSummary:
    """
    Roster-wide statistics.

    Students without a performance summary are left out of the accuracy and
    hint averages; a topic's distribution covers only students who attempted it.
    Students without a risk level are listed in insufficient_data instead of
    being counted in a risk bucket.
    completion_rate is the share of students whose last journey node succeeded,
    over students with a journey.
    """

    with_perf = [s.performance for s in students if s.performance is not None]
    topics = topic_distribution(students)

    weakest = min(topics.values(), key=lambda t: t.mean).topic if topics else None
    strongest = max(topics.values(), key=lambda t: t.mean).topic if topics else None

    risk_counts = {level: 0 for level in RiskLevel}
    insufficient: List[str] = []
    for student in students:
        if student.risk_level is None:
            insufficient.append(student.student_id)
        else:
            risk_counts[student.risk_level] += 1

    with_journey = [s for s in students if s.journey]
    completed = sum(1 for s in with_journey if s.journey[-1].status == NodeStatus.SUCCESS)

    error_patterns: Dict[str, int] = {}
    for student in students:
        for tag, count in student.error_patterns.items():
            error_patterns[tag] = error_patterns.get(tag, 0) + count

    profiles = [s.bloom for s in students if s.bloom is not None]

    return ClassSummary(
        student_count=len(students),
        average_accuracy=_mean([p.accuracy for p in with_perf]),
        average_hint_dependency=_mean([p.hint_dependency for p in with_perf]),
        topics=topics,
        weakest_topic=weakest,
        strongest_topic=strongest,
        risk_counts=risk_counts,
        completion_rate=percentage(completed, len(with_journey)) if with_journey else None,
        bloom=analyze_class_bloom(profiles) if profiles else None,
        error_patterns=dict(sorted(error_patterns.items(), key=lambda kv: -kv[1])),
        insufficient_data=insufficient,
    )


def group_students(students: Sequence[StudentAnalytics]) -> Dict[str, List[str]]:
    """Bucket students by risk tier; students with insufficient data join no group."""
    groups: Dict[str, List[str]] = {GROUP_STRUGGLING: [], GROUP_AVERAGE: [], GROUP_ADVANCED: []}
    for student in students:
        if student.risk_level is None:
            continue
        groups[GROUP_BY_RISK[student.risk_level]].append(student.student_id)
    return groups


def at_risk_students(students: Sequence[StudentAnalytics]) -> List[StudentAnalytics]:
    return [s for s in students if s.risk_level in (RiskLevel.HIGH, RiskLevel.MEDIUM)]


def mastery_heatmap(students: Sequence[StudentAnalytics]) -> pd.DataFrame:
    """Students x topics mastery matrix. Unattempted topics are NaN, not 0."""

    topics = sorted({topic for s in students for topic in s.mastery})
    if not students:
        return pd.DataFrame(columns=topics)
    frame = pd.DataFrame(
        [[s.mastery.get(topic, np.nan) for topic in topics] for s in students],
        index=pd.Index([s.student_id for s in students], name="student_id"),
        columns=topics,
        dtype=float,
    )
    return frame


def compare_classes(classes: Mapping[str, Sequence[StudentAnalytics]]) -> pd.DataFrame:
    columns = [
        "class_id",
        "student_count",
        "average_mastery",
        "average_accuracy",
        "average_hint_dependency",
        "high_risk",
        "medium_risk",
        "low_risk",
        "insufficient_data",
        "completion_rate",
        "weakest_topic",
    ]
    rows = []
    for class_id, students in classes.items():
        summary = summarize_class(students)
        masteries = [m for m in (overall_mastery(s.mastery) for s in students) if m is not None]
        rows.append(
            {
                "class_id": class_id,
                "student_count": summary.student_count,
                "average_mastery": _mean(masteries),
                "average_accuracy": summary.average_accuracy,
                "average_hint_dependency": summary.average_hint_dependency,
                "high_risk": summary.risk_counts[RiskLevel.HIGH],
                "medium_risk": summary.risk_counts[RiskLevel.MEDIUM],
                "low_risk": summary.risk_counts[RiskLevel.LOW],
                "insufficient_data": len(summary.insufficient_data),
                "completion_rate": summary.completion_rate,
                "weakest_topic": summary.weakest_topic,
            }
        )
    return pd.DataFrame(rows, columns=columns)
