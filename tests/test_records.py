# ABOUTME: Tests normalization of raw session and submission documents into canonical records.
# ABOUTME: Also checks the parquet export keeps the canonical attempt columns.

from datetime import datetime, timezone

import pandas as pd

from src.analytics.features import ATTEMPT_COLUMNS
from src.analytics.schemas import Connection, NodeStatus, NodeType, Variant
from src.storage.records import (
    export_attempts,
    sessions_to_attempts,
    sessions_to_journey,
    submission_from_document,
    to_epoch_ms,
)

SESSION = {
    "studentId": "s1",
    "topic": "rights",
    "startTime": "2024-05-01T08:00:00Z",
    "interactions": [
        {"questionId": "intro", "type": "video", "timestamp": 1714550405000},
        {
            "questionId": "q2",
            "type": "multiple-choice",
            "isCorrect": False,
            "timestamp": 1714550460000,
            "variantUsed": "יישום",
            "hintsUsed": 2,
            "responseTime": 14,
        },
        {"questionId": "q1", "type": "open-question", "isCorrect": True, "timestamp": 1714550430000, "topic": "knesset"},
        {"questionId": "r1", "type": "ordering", "isCorrect": True, "isRemediation": True, "timestamp": 1714550500000},
        {"questionId": "skip", "type": "ordering", "wasSkipped": True},
    ],
}


def test_to_epoch_ms():
    assert to_epoch_ms(1000) == 1000.0
    assert to_epoch_ms("1970-01-01T00:00:01Z") == 1000.0
    assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 2)) == 2000.0
    assert to_epoch_ms("yesterday") is None
    assert to_epoch_ms(True) is None
    assert to_epoch_ms(None) is None


def test_sessions_to_journey_orders_and_types_nodes():
    nodes = sessions_to_journey([SESSION])

    # The skipped interaction inherits the session start and sorts first
    assert [n.node_id for n in nodes] == ["skip", "intro", "q1", "q2", "r1"]
    by_id = {n.node_id: n for n in nodes}
    assert by_id["intro"].type == NodeType.CONTENT
    assert by_id["intro"].status == NodeStatus.VIEWED
    assert by_id["skip"].status == NodeStatus.SKIPPED
    assert by_id["q2"].status == NodeStatus.FAILURE
    assert by_id["q2"].variant_used == Variant.APPLICATION
    assert by_id["q2"].metadata["hints_used"] == 2
    assert by_id["r1"].type == NodeType.REMEDIATION
    assert by_id["r1"].connection == Connection.BRANCHED


def test_sessions_to_journey_drops_untimed_interactions():
    session = {"interactions": [{"questionId": "q1", "isCorrect": True}]}
    assert sessions_to_journey([session]) == []


def test_sessions_to_attempts_keeps_graded_interactions():
    attempts = sessions_to_attempts("s1", [SESSION])

    assert [a.question_id for a in attempts] == ["q1", "q2", "r1"]
    q1, q2, r1 = attempts
    assert q1.topic == "knesset"
    assert q1.correct is True
    assert q2.topic == "rights"
    assert q2.hint_used is True
    assert q2.response_time_seconds == 14.0
    assert q2.question_type == "multiple-choice"
    assert r1.hint_used is False
    assert q1.timestamp == datetime(2024, 5, 1, 8, 0, 30, tzinfo=timezone.utc)


def test_submission_from_document_reads_answers_and_telemetry():
    doc = {
        "studentId": "s1",
        "answers": {
            "q2": {"selectedOption": 1},
            "q1": {"text": "The Knesset legislates"},
            "bad": "not a mapping",
        },
        "telemetry": {
            "responseTimes": {"q1": 12.5, "q2": "slow", "q3": 4},
            "totalBlocks": 5,
            "successBlocks": 2,
            "timeSpentSeconds": 90,
            "tabSwitches": "many",
            "hintsUsed": {"q1": 1},
        },
    }
    submission = submission_from_document("s1", doc)

    assert [a.question_id for a in submission.answers] == ["q1", "q2"]
    assert submission.answers[1].selected_option == "1"
    assert submission.answers[0].text == "The Knesset legislates"
    assert submission.response_times == [12.5, 4.0]
    assert submission.total_blocks == 5
    assert submission.success_blocks == 2
    assert submission.time_spent_seconds == 90.0
    assert submission.tab_switches is None
    assert submission.hints_used == {"q1": 1}


def test_submission_without_telemetry_stays_empty():
    submission = submission_from_document("s1", {"answers": {}})

    assert submission.answers == []
    assert submission.response_times is None
    assert submission.total_blocks is None
    assert submission.hints_used is None


def test_export_attempts_writes_parquet(tmp_path):
    path = export_attempts(sessions_to_attempts("s1", [SESSION]), tmp_path / "out" / "attempts.parquet")

    df = pd.read_parquet(path)
    assert list(df.columns) == ATTEMPT_COLUMNS
    assert len(df) == 3
    assert df["correct"].tolist() == [True, False, True]


def test_export_attempts_empty(tmp_path):
    path = export_attempts([], tmp_path / "empty.parquet")
    assert pd.read_parquet(path).empty
