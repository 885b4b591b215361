# ABOUTME: Detects gaming or rushing behavior from a task submission's answers and telemetry.
# ABOUTME: Every detector stays silent when the signal it needs is missing.

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

import pandas as pd

from .policy import DEFAULT_POLICY, GamingPolicy
from .schemas import GamingAlert, GamingAnalysis, Submission

SEVERITY_ORDER = ["low", "medium", "high"]

GAMING_LABELS_HE: Dict[str, str] = {
    "quick_skip": "דילוגים מהירים",
    "random_click": "לחיצות אקראיות",
    "pattern_response": "תבנית תגובה",
    "copy_paste": "העתקה",
    "tab_switching": "מעבר בין חלונות",
}

EFFORT_LABELS_HE: Dict[str, str] = {
    "high_effort": "מאמץ גבוה",
    "quick_guess": "ניחוש מהיר",
    "normal": "רגיל",
}

REPORT_COLUMNS = [
    "student_id",
    "alert_type",
    "severity",
    "confidence",
    "evidence",
    "recommendation",
    "effort",
]


def text_similarity(first: str, second: str) -> float:
    """Word-overlap similarity: shared words over the longer answer's word count."""
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0
    words_a = first.lower().split()
    words_b = second.lower().split()
    if not words_a or not words_b:
        return 0.0
    shared = [w for w in words_a if w in words_b]
    return len(shared) / max(len(words_a), len(words_b))


def detect_quick_skip(submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming) -> Optional[GamingAlert]:
    times = submission.response_times
    if not times or len(times) < policy.quick_skip_streak:
        return None

    max_streak = 0
    streak = 0
    quick_times: List[float] = []
    for seconds in times:
        if seconds < policy.quick_skip_seconds:
            streak += 1
            quick_times.append(seconds)
            max_streak = max(max_streak, streak)
        else:
            streak = 0

    if max_streak < policy.quick_skip_streak:
        return None

    avg_quick = sum(quick_times) / len(quick_times)
    if max_streak >= 5:
        severity = "high"
    elif max_streak >= 4:
        severity = "medium"
    else:
        severity = "low"
    return GamingAlert(
        alert_type="quick_skip",
        severity=severity,
        confidence=min(0.9, 0.5 + (max_streak - policy.quick_skip_streak) * 0.1),
        evidence=[
            f"{max_streak} consecutive answers under {policy.quick_skip_seconds:g} seconds",
            f"Average quick response time: {avg_quick:.1f} seconds",
        ],
        recommendation="Student is skipping through questions. Ask them to slow down and read each prompt.",
    )


def detect_random_click(submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming) -> Optional[GamingAlert]:
    if submission.total_blocks is None or submission.success_blocks is None or submission.time_spent_seconds is None:
        return None
    if submission.total_blocks <= 0:
        return None

    accuracy = submission.success_blocks / submission.total_blocks
    avg_time = submission.time_spent_seconds / submission.total_blocks
    if accuracy >= policy.random_accuracy or avg_time >= policy.quick_skip_seconds * 2:
        return None

    return GamingAlert(
        alert_type="random_click",
        severity="high" if accuracy < 0.15 else "medium",
        confidence=min(0.85, 0.4 + (policy.random_accuracy - accuracy)),
        evidence=[
            f"Low accuracy: {round(accuracy * 100)}%",
            f"Average time per block: {avg_time:.1f} seconds",
            "Low accuracy combined with fast answers suggests random clicking",
        ],
        recommendation="Answers look random. Review the task with the student before the next attempt.",
    )


def detect_pattern_response(
    submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming
) -> Optional[GamingAlert]:
    options = [str(a.selected_option) for a in submission.answers if a.selected_option is not None]
    if len(options) < policy.pattern_min_answers:
        return None

    frequency: Dict[str, int] = {}
    for option in options:
        frequency[option] = frequency.get(option, 0) + 1
    dominant_option, dominant_count = max(frequency.items(), key=lambda pair: pair[1])
    ratio = dominant_count / len(options)
    if ratio <= policy.pattern_dominant_ratio:
        return None

    return GamingAlert(
        alert_type="pattern_response",
        severity="high" if ratio > 0.85 else "medium",
        confidence=min(0.8, ratio),
        evidence=[
            f"{round(ratio * 100)}% of answers chose option {dominant_option}",
            f"Out of {len(options)} multiple-choice questions",
        ],
        recommendation="Student keeps choosing the same option. Check whether the questions were read.",
    )


def detect_copy_paste(submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming) -> Optional[GamingAlert]:
    texts = [
        a.text for a in submission.answers if isinstance(a.text, str) and len(a.text) > policy.copy_paste_min_length
    ]
    if len(texts) < 2:
        return None

    similarities: List[float] = []
    high_pairs = 0
    for i in range(len(texts)):
        for j in range(i + 1, len(texts)):
            similarity = text_similarity(texts[i], texts[j])
            similarities.append(similarity)
            if similarity > policy.copy_paste_similarity:
                high_pairs += 1

    if high_pairs == 0:
        return None

    avg_similarity = sum(similarities) / len(similarities)
    return GamingAlert(
        alert_type="copy_paste",
        severity="high" if high_pairs > 2 else "medium",
        confidence=min(0.75, avg_similarity),
        evidence=[
            f"{high_pairs} answer pairs are nearly identical",
            f"Average similarity: {round(avg_similarity * 100)}%",
        ],
        recommendation="Open answers repeat the same text. Ask for answers in the student's own words.",
    )


def detect_tab_switching(
    submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming
) -> Optional[GamingAlert]:
    switches = submission.tab_switches
    if not switches:
        return None

    if submission.time_spent_seconds is None or submission.time_spent_seconds <= 0:
        return None

    minutes = submission.time_spent_seconds / 60
    per_minute = switches / minutes
    if per_minute <= policy.tab_switches_per_minute:
        return None

    return GamingAlert(
        alert_type="tab_switching",
        severity="high" if per_minute > 5 else "medium",
        confidence=min(0.7, 0.4 + per_minute * 0.05),
        evidence=[
            f"{switches} switches away from the task window",
            f"Average {per_minute:.1f} switches per minute",
        ],
        recommendation="Frequent window switching. The student may be searching for answers elsewhere.",
    )


DETECTORS: List[Callable[[Submission, GamingPolicy], Optional[GamingAlert]]] = [
    detect_quick_skip,
    detect_random_click,
    detect_pattern_response,
    detect_copy_paste,
    detect_tab_switching,
]


def overall_risk(alerts: List[GamingAlert]) -> str:
    if not alerts:
        return "none"
    return max((a.severity for a in alerts), key=SEVERITY_ORDER.index)


def analyze_submission(submission: Submission, policy: GamingPolicy = DEFAULT_POLICY.gaming) -> GamingAnalysis:
    alerts: List[GamingAlert] = []
    for detector in DETECTORS:
        alert = detector(submission, policy)
        if alert:
            alerts.append(alert)

    if alerts:
        labels = ", ".join(a.alert_type for a in alerts)
        summary = f"Detected {len(alerts)} suspicious pattern(s): {labels}"
    else:
        summary = "No suspicious patterns detected"

    return GamingAnalysis(
        has_gaming=bool(alerts),
        alerts=alerts,
        overall_risk=overall_risk(alerts),
        summary=summary,
    )


def classify_effort(submission: Submission) -> str:
    """high_effort, quick_guess, or normal; normal whenever block or timing telemetry is missing."""

    if not submission.total_blocks or submission.success_blocks is None or submission.time_spent_seconds is None:
        return "normal"
    avg_time = submission.time_spent_seconds / submission.total_blocks
    accuracy = submission.success_blocks / submission.total_blocks
    total_hints = sum((submission.hints_used or {}).values())

    if avg_time > 45 and accuracy > 0.5:
        return "high_effort"
    if avg_time < 10 and accuracy < 0.5 and total_hints < 2:
        return "quick_guess"
    return "normal"


def generate_gaming_report(
    submissions: Iterable[Submission], policy: GamingPolicy = DEFAULT_POLICY.gaming
) -> pd.DataFrame:
    rows: List[Dict] = []
    for submission in submissions:
        effort = classify_effort(submission)
        for alert in analyze_submission(submission, policy).alerts:
            rows.append(
                {
                    "student_id": submission.student_id,
                    "alert_type": alert.alert_type,
                    "severity": alert.severity,
                    "confidence": alert.confidence,
                    "evidence": alert.evidence,
                    "recommendation": alert.recommendation,
                    "effort": effort,
                }
            )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)
