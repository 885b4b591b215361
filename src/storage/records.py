# ABOUTME: Normalizes raw session, event, and submission documents into canonical records.
# ABOUTME: Emits JourneyNode and AttemptRecord values and exports attempts to parquet.

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pyarrow as pa
import pyarrow.parquet as pq
from loguru import logger

from src.analytics.features import attempts_to_frame
from src.analytics.schemas import (
    AttemptRecord,
    Connection,
    JourneyNode,
    NodeStatus,
    NodeType,
    Submission,
    SubmissionAnswer,
    parse_variant,
)

CONTENT_TYPES = {"text", "video", "pdf"}


def to_epoch_ms(value: Any) -> Optional[float]:
    """Accept epoch milliseconds, datetimes, or ISO-8601 strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.timestamp() * 1000.0
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_epoch_ms(dt)
    return None


def _ms_to_datetime(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def _node_type(interaction: Mapping[str, Any]) -> NodeType:
    if interaction.get("type") in CONTENT_TYPES:
        return NodeType.CONTENT
    if interaction.get("isRemediation"):
        return NodeType.REMEDIATION
    return NodeType.QUESTION


def _node_status(interaction: Mapping[str, Any]) -> NodeStatus:
    is_correct = interaction.get("isCorrect")
    if is_correct is True:
        return NodeStatus.SUCCESS
    if is_correct is False:
        return NodeStatus.FAILURE
    if interaction.get("wasSkipped"):
        return NodeStatus.SKIPPED
    return NodeStatus.VIEWED


def sessions_to_journey(sessions: Iterable[Mapping[str, Any]]) -> List[JourneyNode]:
    """
    Flatten session interactions into journey nodes sorted by timestamp.

    Interactions without a usable timestamp inherit the session start time;
    when neither exists the interaction is dropped.
    """

    nodes: List[JourneyNode] = []
    dropped = 0
    for session in sessions:
        session_start = to_epoch_ms(session.get("startTime"))
        for interaction in session.get("interactions") or []:
            timestamp = to_epoch_ms(interaction.get("timestamp"))
            if timestamp is None:
                timestamp = session_start
            if timestamp is None:
                dropped += 1
                continue
            question_id = interaction.get("questionId")
            nodes.append(
                JourneyNode(
                    node_id=question_id or f"node-{len(nodes)}",
                    type=_node_type(interaction),
                    status=_node_status(interaction),
                    timestamp=timestamp,
                    variant_used=parse_variant(interaction.get("variantUsed")),
                    connection=Connection.BRANCHED if interaction.get("isRemediation") else Connection.SEQUENTIAL,
                    block_id=question_id,
                    block_type=interaction.get("type"),
                    metadata={
                        "response_time": interaction.get("responseTime"),
                        "hints_used": interaction.get("hintsUsed"),
                        "attempt_count": interaction.get("attemptCount"),
                    },
                )
            )
    if dropped:
        logger.warning("Dropped {} interactions without a timestamp", dropped)
    return sorted(nodes, key=lambda n: n.timestamp)


def sessions_to_attempts(student_id: str, sessions: Iterable[Mapping[str, Any]]) -> List[AttemptRecord]:
    """Graded interactions (isCorrect is a bool) become attempts; everything else is ignored."""

    attempts: List[AttemptRecord] = []
    for session in sessions:
        session_start = to_epoch_ms(session.get("startTime"))
        session_topic = session.get("topic")
        for interaction in session.get("interactions") or []:
            correct = interaction.get("isCorrect")
            if not isinstance(correct, bool):
                continue
            timestamp = to_epoch_ms(interaction.get("timestamp"))
            if timestamp is None:
                timestamp = session_start
            if timestamp is None:
                continue
            hints = interaction.get("hintsUsed") or 0
            response_time = interaction.get("responseTime")
            attempts.append(
                AttemptRecord(
                    student_id=student_id,
                    topic=interaction.get("topic") or session_topic or "",
                    correct=correct,
                    timestamp=_ms_to_datetime(timestamp),
                    bloom_level=interaction.get("bloomLevel"),
                    hint_used=bool(hints),
                    response_time_seconds=float(response_time) if isinstance(response_time, (int, float)) else None,
                    question_id=interaction.get("questionId"),
                    question_type=interaction.get("type"),
                )
            )
    return sorted(attempts, key=lambda a: a.timestamp)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def submission_from_document(student_id: str, document: Mapping[str, Any]) -> Submission:
    """Build a Submission; telemetry fields that are absent or mistyped stay None."""

    answers: List[SubmissionAnswer] = []
    raw_answers = document.get("answers") or {}
    for question_id, answer in sorted(raw_answers.items()):
        if not isinstance(answer, Mapping):
            continue
        selected = answer.get("selectedOption")
        text = answer.get("text")
        answers.append(
            SubmissionAnswer(
                question_id=str(question_id),
                selected_option=None if selected is None else str(selected),
                text=text if isinstance(text, str) else None,
            )
        )

    telemetry = document.get("telemetry") or {}
    response_times = telemetry.get("responseTimes")
    if isinstance(response_times, Mapping):
        times: Optional[List[float]] = [float(v) for v in response_times.values() if _as_float(v) is not None]
    elif isinstance(response_times, list):
        times = [float(v) for v in response_times if _as_float(v) is not None]
    else:
        times = None

    hints = telemetry.get("hintsUsed")
    hints_used: Optional[Dict[str, int]] = None
    if isinstance(hints, Mapping):
        hints_used = {str(k): int(v) for k, v in hints.items() if _as_int(v) is not None}

    return Submission(
        student_id=student_id,
        answers=answers,
        response_times=times,
        total_blocks=_as_int(telemetry.get("totalBlocks")),
        success_blocks=_as_int(telemetry.get("successBlocks")),
        time_spent_seconds=_as_float(telemetry.get("timeSpentSeconds")),
        tab_switches=_as_int(telemetry.get("tabSwitches")),
        hints_used=hints_used,
    )


def export_attempts(attempts: Iterable[AttemptRecord], path: Union[str, Path]) -> Path:
    """Write attempts to parquet with the canonical column order."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = attempts_to_frame(attempts)
    table = pa.Table.from_pandas(df, preserve_index=False)
    pq.write_table(table, path)
    logger.info("Exported {} attempts to {}", len(df), path)
    return path
