# ABOUTME: Builds per-student performance features from canonical attempt records.
# ABOUTME: Feeds accuracy, hint dependency, and timing into risk and motivation scoring.

from typing import Iterable, Optional

import pandas as pd

from .schemas import AttemptRecord, PerformanceSummary

ATTEMPT_COLUMNS = [
    "student_id",
    "topic",
    "bloom_level",
    "correct",
    "timestamp",
    "hint_used",
    "response_time_seconds",
    "question_id",
    "question_type",
]


def attempts_to_frame(attempts: Iterable[AttemptRecord]) -> pd.DataFrame:
    """
    Convert canonical attempt records into a DataFrame with stable column order.
    """

    rows = [
        {
            "student_id": a.student_id,
            "topic": a.topic,
            "bloom_level": a.bloom_level,
            "correct": bool(a.correct),
            "timestamp": a.timestamp,
            "hint_used": bool(a.hint_used),
            "response_time_seconds": a.response_time_seconds,
            "question_id": a.question_id,
            "question_type": a.question_type,
        }
        for a in attempts
    ]
    if not rows:
        return pd.DataFrame(columns=ATTEMPT_COLUMNS)

    df = pd.DataFrame(rows, columns=ATTEMPT_COLUMNS)
    df["response_time_seconds"] = pd.to_numeric(df["response_time_seconds"], errors="coerce")
    if not pd.api.types.is_datetime64_any_dtype(df["timestamp"]):
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    return df.sort_values(["student_id", "timestamp"], kind="mergesort").reset_index(drop=True)


def build_performance_summary(attempts: Iterable[AttemptRecord]) -> Optional[PerformanceSummary]:
    """
    Summarize one student's attempts. Returns None when there are no attempts so
    callers can show "insufficient data" instead of a row of zeros.
    """

    df = attempts_to_frame(attempts)
    if df.empty:
        return None

    latencies = df["response_time_seconds"].dropna()
    return PerformanceSummary(
        accuracy=float(df["correct"].mean()),
        hint_dependency=float(df["hint_used"].mean()),
        avg_response_time=float(latencies.mean()) if not latencies.empty else 0.0,
        total_questions=int(len(df)),
    )


def build_performance_features(attempts_df: pd.DataFrame) -> pd.DataFrame:
    """Per-student feature table (accuracy, hint rate, latency, volume) for roster views."""

    columns = [
        "student_id",
        "total_questions",
        "accuracy",
        "hint_dependency",
        "avg_response_time",
        "median_response_time",
        "first_ts",
        "last_ts",
    ]
    if attempts_df is None or attempts_df.empty:
        return pd.DataFrame(columns=columns)

    grouped = (
        attempts_df.groupby("student_id", sort=True)
        .agg(
            total_questions=("correct", "size"),
            accuracy=("correct", "mean"),
            hint_dependency=("hint_used", "mean"),
            avg_response_time=("response_time_seconds", "mean"),
            median_response_time=("response_time_seconds", "median"),
            first_ts=("timestamp", "min"),
            last_ts=("timestamp", "max"),
        )
        .reset_index()
    )
    grouped["accuracy"] = grouped["accuracy"].astype(float)
    grouped["hint_dependency"] = grouped["hint_dependency"].astype(float)
    return grouped[columns]
