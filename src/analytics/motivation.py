# ABOUTME: Scores a student's motivation from accuracy, independence, progress, and engagement.
# ABOUTME: Pure function over StudentAnalytics; weights and tier cutoffs come from MotivationPolicy.

from __future__ import annotations

from typing import List

from src.common.numeric import clamp_unit, round_half_up

from .journey import journey_success_rate
from .policy import DEFAULT_POLICY, MotivationPolicy
from .schemas import MotivationFactor, MotivationScore, StudentAnalytics


def _accuracy_factor(accuracy: float, policy: MotivationPolicy) -> MotivationFactor:
    pct = accuracy * 100
    trend = "up" if pct > 70 else "down" if pct < 50 else "stable"
    return MotivationFactor(
        name="accuracy",
        value=min(policy.accuracy_cap, pct * policy.accuracy_weight),
        max_value=policy.accuracy_cap,
        trend=trend,
    )


def _independence_factor(hint_dependency: float, policy: MotivationPolicy) -> MotivationFactor:
    trend = "up" if hint_dependency < 0.3 else "down" if hint_dependency > 0.6 else "stable"
    return MotivationFactor(
        name="independence",
        value=min(policy.independence_cap, (1 - hint_dependency) * policy.independence_cap),
        max_value=policy.independence_cap,
        trend=trend,
    )


def _progress_factor(success_rate: float, policy: MotivationPolicy) -> MotivationFactor:
    trend = "up" if success_rate > 0.7 else "down" if success_rate < 0.4 else "stable"
    return MotivationFactor(
        name="progress",
        value=min(policy.progress_cap, success_rate * policy.progress_cap),
        max_value=policy.progress_cap,
        trend=trend,
    )


def _engagement_factor(total_questions: int, policy: MotivationPolicy) -> MotivationFactor:
    return MotivationFactor(
        name="engagement",
        value=min(policy.engagement_cap, total_questions * policy.engagement_per_question),
        max_value=policy.engagement_cap,
        trend="up" if total_questions > 5 else "stable",
    )


def motivation_tier(score: int, policy: MotivationPolicy = DEFAULT_POLICY.motivation) -> str:
    if score >= policy.high_tier:
        return "high"
    if score >= policy.medium_tier:
        return "medium"
    return "low"


def score_motivation(
    student: StudentAnalytics,
    policy: MotivationPolicy = DEFAULT_POLICY.motivation,
) -> MotivationScore:
    """
    Combine four capped factors into a 0..100 score.

    A student with no performance summary contributes zero accuracy and
    engagement and full independence; the progress factor reads the journey.
    Ratios outside [0, 1] are clamped so every factor stays within [0, cap].
    """

    perf = student.performance
    accuracy = clamp_unit(perf.accuracy, "accuracy") if perf else 0.0
    hint_dependency = clamp_unit(perf.hint_dependency, "hint_dependency") if perf else 0.0
    total_questions = max(0, perf.total_questions) if perf else 0
    success_rate = clamp_unit(journey_success_rate(student.journey), "journey success rate")

    factors: List[MotivationFactor] = [
        _accuracy_factor(accuracy, policy),
        _independence_factor(hint_dependency, policy),
        _progress_factor(success_rate, policy),
        _engagement_factor(total_questions, policy),
    ]
    raw = sum(f.value for f in factors)
    score = max(0, min(100, round_half_up(raw)))
    return MotivationScore(level=motivation_tier(score, policy), score=score, factors=factors)
