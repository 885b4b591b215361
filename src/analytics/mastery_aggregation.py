# ABOUTME: Aggregates graded attempts into per-topic mastery and assigns a risk tier.
# ABOUTME: Topics without attempts are omitted rather than reported as zero mastery.

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from src.common.numeric import clamp_unit

from .features import attempts_to_frame
from .policy import DEFAULT_POLICY, RiskPolicy
from .schemas import RISK_ORDER, AttemptRecord, PerformanceSummary, RiskLevel

MASTERY_COLUMNS = ["student_id", "topic", "mastery_mean", "mastery_std", "attempt_count"]


def build_mastery_map(attempts: Iterable[AttemptRecord]) -> Dict[str, float]:
    """
    Mean correctness per topic for a single student's attempts.

    Every historical attempt weighs the same; there is no recency decay.
    """

    df = attempts_to_frame(attempts)
    df = df[df["topic"].notna() & (df["topic"] != "")]
    if df.empty:
        return {}
    means = df.groupby("topic", sort=True)["correct"].mean()
    return {str(topic): float(value) for topic, value in means.items()}


def aggregate_skill_mastery(attempts_df: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate attempts to per-(student, topic) mastery summaries.

    Steps:
    - Drop attempts with no topic.
    - Compute mean/std/count of correctness per (student_id, topic).
    """

    if attempts_df is None or attempts_df.empty:
        return pd.DataFrame(columns=MASTERY_COLUMNS)

    tagged = attempts_df.dropna(subset=["topic"])
    tagged = tagged[tagged["topic"] != ""]
    if tagged.empty:
        return pd.DataFrame(columns=MASTERY_COLUMNS)

    grouped = (
        tagged.assign(correct=tagged["correct"].astype(float))
        .groupby(["student_id", "topic"])
        .agg(
            mastery_mean=("correct", "mean"),
            mastery_std=("correct", lambda s: float(s.std(ddof=0))),
            attempt_count=("correct", "count"),
        )
        .reset_index()
    )

    # Replace NaN std (single sample) with 0.0
    grouped["mastery_std"] = grouped["mastery_std"].fillna(0.0)
    return grouped[MASTERY_COLUMNS]


def overall_mastery(mastery: Mapping[str, float]) -> Optional[float]:
    if not mastery:
        return None
    return sum(mastery.values()) / len(mastery)


def classify_risk(mastery: float, policy: RiskPolicy = DEFAULT_POLICY.risk) -> RiskLevel:
    """Mastery-only tier: below low_threshold is high risk, above high_threshold is low risk."""

    mastery = clamp_unit(mastery, "mastery")
    if mastery < policy.low_threshold:
        return RiskLevel.HIGH
    if mastery > policy.high_threshold:
        return RiskLevel.LOW
    return RiskLevel.MEDIUM


def classify_performance_risk(
    accuracy: float,
    hint_dependency: float,
    mastery: float,
    policy: RiskPolicy = DEFAULT_POLICY.risk,
) -> RiskLevel:
    accuracy = clamp_unit(accuracy, "accuracy")
    hint_dependency = clamp_unit(hint_dependency, "hint_dependency")
    mastery = clamp_unit(mastery, "mastery")

    if (
        accuracy < policy.high_risk_accuracy
        or hint_dependency > policy.high_risk_hint_dependency
        or mastery < policy.high_risk_mastery
    ):
        return RiskLevel.HIGH
    if (
        accuracy < policy.medium_risk_accuracy
        or hint_dependency > policy.medium_risk_hint_dependency
        or mastery < policy.medium_risk_mastery
    ):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def worse_risk(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if RISK_ORDER.index(a) <= RISK_ORDER.index(b) else b


def assess_risk(
    mastery: Optional[float],
    performance: Optional[PerformanceSummary],
    policy: RiskPolicy = DEFAULT_POLICY.risk,
) -> Optional[RiskLevel]:
    """
    Combine the mastery tier with the performance rule, keeping the worse of the two.

    Returns None when neither mastery nor performance is known: such a student
    has insufficient data and belongs in no risk tier.

    The result is never more favorable than classify_risk(mastery), so a mastery
    below low_threshold can never come out as low risk.
    """

    if mastery is None and performance is None:
        return None
    if performance is None:
        return classify_risk(mastery, policy)

    performance_mastery = mastery if mastery is not None else performance.accuracy
    performance_tier = classify_performance_risk(
        performance.accuracy, performance.hint_dependency, performance_mastery, policy
    )
    if mastery is None:
        return performance_tier
    return worse_risk(classify_risk(mastery, policy), performance_tier)
