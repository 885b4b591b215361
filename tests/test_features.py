# ABOUTME: Tests the attempt frame and the per-student performance features built from it.
# ABOUTME: An empty attempt list must give "no summary", not a row of zeros.

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from src.analytics.features import (
    ATTEMPT_COLUMNS,
    attempts_to_frame,
    build_performance_features,
    build_performance_summary,
)
from src.analytics.schemas import AttemptRecord

T0 = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _attempt(student, correct, minute, hint=False, seconds=None):
    return AttemptRecord(
        student_id=student,
        topic="rights",
        correct=correct,
        timestamp=T0 + timedelta(minutes=minute),
        hint_used=hint,
        response_time_seconds=seconds,
    )


def _attempts():
    return [
        _attempt("s2", False, 5, hint=True, seconds=30),
        _attempt("s1", True, 3, seconds=10),
        _attempt("s1", False, 1, hint=True, seconds=20),
        _attempt("s1", True, 2),
    ]


def test_attempts_to_frame_orders_by_student_and_time():
    df = attempts_to_frame(_attempts())

    assert list(df.columns) == ATTEMPT_COLUMNS
    assert list(df["student_id"]) == ["s1", "s1", "s1", "s2"]
    assert list(df[df["student_id"] == "s1"]["correct"]) == [False, True, True]


def test_attempts_to_frame_empty():
    df = attempts_to_frame([])
    assert df.empty
    assert list(df.columns) == ATTEMPT_COLUMNS


def test_build_performance_summary():
    summary = build_performance_summary([a for a in _attempts() if a.student_id == "s1"])

    assert summary.accuracy == pytest.approx(2 / 3)
    assert summary.hint_dependency == pytest.approx(1 / 3)
    assert summary.avg_response_time == pytest.approx(15.0)
    assert summary.total_questions == 3


def test_build_performance_summary_without_attempts():
    assert build_performance_summary([]) is None


def test_build_performance_features():
    features = build_performance_features(attempts_to_frame(_attempts()))

    s1 = features[features["student_id"] == "s1"].iloc[0]
    assert s1["total_questions"] == 3
    assert s1["accuracy"] == pytest.approx(2 / 3)
    assert s1["median_response_time"] == pytest.approx(15.0)
    assert s1["first_ts"] == pd.Timestamp(T0 + timedelta(minutes=1))

    s2 = features[features["student_id"] == "s2"].iloc[0]
    assert s2["hint_dependency"] == 1.0


def test_build_performance_features_empty():
    features = build_performance_features(pd.DataFrame())
    assert features.empty
    assert "accuracy" in features.columns
