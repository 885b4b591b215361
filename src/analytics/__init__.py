# ABOUTME: Groups the student and class analytics: mastery, risk, Bloom, motivation, and gaming.
# ABOUTME: Re-exports the pure scoring entrypoints; AnalyticsService lives in .service.

from .bloom import analyze_class_bloom, analyze_student_bloom
from .class_aggregation import group_students, summarize_class
from .gaming_detection import analyze_submission
from .journey import journey_stats
from .mastery_aggregation import assess_risk, build_mastery_map, classify_risk
from .motivation import score_motivation
from .policy import DEFAULT_POLICY, AnalyticsPolicy, load_policy

__all__ = [
    "analyze_class_bloom",
    "analyze_student_bloom",
    "group_students",
    "summarize_class",
    "analyze_submission",
    "journey_stats",
    "assess_risk",
    "build_mastery_map",
    "classify_risk",
    "score_motivation",
    "DEFAULT_POLICY",
    "AnalyticsPolicy",
    "load_policy",
]
