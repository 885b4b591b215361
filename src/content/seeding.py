# ABOUTME: Resumable batch runner that seeds generated Bagrut questions into the document store.
# ABOUTME: Persists a checkpoint after every item, retries failures with a cooldown, and never aborts on one item.

from __future__ import annotations

import json
import os
import random
import tempfile
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from src.analytics.policy import SeedingPolicy
from src.common.errors import FatalSeedingError
from src.storage.document_store import DocumentStore

from .generator import ContentGenerator
from .parsing import ParseError, parse_question
from .prompts import (
    QUESTION_TYPE_DISTRIBUTION,
    SUBJECTS,
    build_question_prompt,
    default_rubric,
    points_for,
    topics_from_chapter,
)

QUESTIONS_COLLECTION = "questions"

# 30% easy, 40% medium, 30% hard.
DIFFICULTY_DISTRIBUTION = [1, 1, 1, 2, 2, 2, 2, 3, 3, 3]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Checkpoint:
    task: str
    completed: Dict[str, str] = field(default_factory=dict)  # item id -> result id
    failed: Dict[str, str] = field(default_factory=dict)  # item id -> last error
    total_processed: int = 0
    total_errors: int = 0
    started_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        return cls(
            task=data["task"],
            completed=dict(data.get("completed") or {}),
            failed=dict(data.get("failed") or {}),
            total_processed=int(data.get("total_processed", 0)),
            total_errors=int(data.get("total_errors", 0)),
            started_at=data.get("started_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
        )


class CheckpointStore:
    """One JSON file per task under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, task: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in task)
        return self.directory / f"{safe}.checkpoint.json"

    def load(self, task: str) -> Checkpoint:
        path = self.path_for(task)
        if not path.exists():
            return Checkpoint(task=task)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        checkpoint = Checkpoint.from_dict(data)
        if checkpoint.task != task:
            raise ValueError(f"Checkpoint {path} belongs to task '{checkpoint.task}', not '{task}'")
        logger.info(
            "Resuming '{}': {} completed, {} failed so far", task, len(checkpoint.completed), len(checkpoint.failed)
        )
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        checkpoint.updated_at = _now()
        path = self.path_for(checkpoint.task)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(asdict(checkpoint), f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def reset(self, task: str) -> None:
        path = self.path_for(task)
        if path.exists():
            path.unlink()


@dataclass(frozen=True)
class WorkItem:
    item_id: str
    payload: Any = None


@dataclass
class SeedingSummary:
    task: str
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    stopped: bool = False
    stop_reason: Optional[str] = None

    @property
    def total_errors(self) -> int:
        return len(self.failed)


class _ItemFailed(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ResumableTask:
    """
    Runs an idempotent per-item function over a batch with a persisted checkpoint.

    Items already completed in the checkpoint are skipped. Any other exception
    from ``process`` is retried up to ``max_attempts`` times with a fixed
    cooldown, then recorded as failed and the batch moves on. FatalSeedingError
    stops the batch immediately; the checkpoint is saved either way so the next
    run resumes where this one stopped.
    """

    def __init__(
        self,
        name: str,
        checkpoint_store: CheckpointStore,
        max_attempts: int = 3,
        cooldown_seconds: float = 30.0,
        delay_seconds: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.name = name
        self.checkpoint_store = checkpoint_store
        self.max_attempts = max_attempts
        self.cooldown_seconds = cooldown_seconds
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    @classmethod
    def from_policy(
        cls,
        name: str,
        checkpoint_store: CheckpointStore,
        policy: SeedingPolicy,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "ResumableTask":
        return cls(
            name,
            checkpoint_store,
            max_attempts=policy.max_attempts,
            cooldown_seconds=policy.cooldown_seconds,
            delay_seconds=policy.delay_between_items_seconds,
            sleep=sleep,
        )

    def _attempt(self, item: WorkItem, process: Callable[[WorkItem], Optional[str]]) -> str:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = process(item)
                return "" if result is None else str(result)
            except FatalSeedingError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Item {} failed (attempt {}/{}): {}", item.item_id, attempt, self.max_attempts, exc
                )
                if attempt < self.max_attempts:
                    self.sleep(self.cooldown_seconds)
        raise _ItemFailed(str(last_error))

    def run(self, items: Iterable[WorkItem], process: Callable[[WorkItem], Optional[str]]) -> SeedingSummary:
        checkpoint = self.checkpoint_store.load(self.name)
        summary = SeedingSummary(task=self.name)
        processed_any = False

        for item in items:
            if item.item_id in checkpoint.completed:
                summary.skipped.append(item.item_id)
                continue
            if processed_any and self.delay_seconds > 0:
                self.sleep(self.delay_seconds)
            processed_any = True

            try:
                result = self._attempt(item, process)
            except FatalSeedingError as exc:
                logger.error("Stopping '{}' at item {}: {}", self.name, item.item_id, exc)
                summary.stopped = True
                summary.stop_reason = str(exc)
                self.checkpoint_store.save(checkpoint)
                break
            except _ItemFailed as exc:
                logger.error("Skipping item {} after {} attempts: {}", item.item_id, self.max_attempts, exc.reason)
                checkpoint.failed[item.item_id] = exc.reason
                checkpoint.total_errors += 1
                summary.failed[item.item_id] = exc.reason
            else:
                checkpoint.completed[item.item_id] = result
                checkpoint.failed.pop(item.item_id, None)
                summary.succeeded.append(item.item_id)
            checkpoint.total_processed += 1
            self.checkpoint_store.save(checkpoint)

        logger.info(
            "Task '{}' finished: {} succeeded, {} failed, {} skipped",
            self.name,
            len(summary.succeeded),
            len(summary.failed),
            len(summary.skipped),
        )
        return summary


@dataclass(frozen=True)
class QuestionJob:
    subject: str
    chapter: str
    topic: str
    question_type: str
    difficulty: int
    points: int

    def prompt(self) -> str:
        return build_question_prompt(
            subject=self.subject,
            chapter=self.chapter,
            topic=self.topic,
            question_type=self.question_type,
            difficulty=self.difficulty,
            points=self.points,
        )


def plan_question_jobs(subjects: Sequence[str], per_chapter: int, seed: int = 0) -> List[WorkItem]:
    """
    Deterministic job list: the same subjects, count, and seed always produce
    the same item ids and difficulties, so a resumed run lines up with its checkpoint.
    """

    rng = random.Random(seed)
    items: List[WorkItem] = []
    for subject in subjects:
        if subject not in SUBJECTS:
            raise ValueError(f"Unknown subject '{subject}'. Expected one of: {', '.join(sorted(SUBJECTS))}")
        for chapter_index, chapter in enumerate(SUBJECTS[subject].chapters):
            topics = topics_from_chapter(chapter)
            for i in range(per_chapter):
                question_type = QUESTION_TYPE_DISTRIBUTION[i % len(QUESTION_TYPE_DISTRIBUTION)]
                difficulty = rng.choice(DIFFICULTY_DISTRIBUTION)
                job = QuestionJob(
                    subject=subject,
                    chapter=chapter,
                    topic=topics[i % len(topics)],
                    question_type=question_type,
                    difficulty=difficulty,
                    points=points_for(question_type, difficulty),
                )
                items.append(WorkItem(item_id=f"{subject}-{chapter_index:02d}-{i:02d}", payload=job))
    return items


def build_question_document(job: QuestionJob, text: str) -> Dict[str, Any]:
    result = parse_question(text)
    if isinstance(result, ParseError):
        raise result.to_exception()
    question = result.question

    document = question.model_dump()
    if not question.rubric:
        document["rubric"] = default_rubric(job.question_type, job.points)
    if job.question_type != "multiple-choice":
        document.pop("options", None)
        document.pop("correct_option_index", None)
    document.update(
        {
            "subject": job.subject,
            "chapter": job.chapter,
            "topic": job.topic,
            "question_type": job.question_type,
            "difficulty": job.difficulty,
            "points": job.points,
            "time_estimate": question.time_estimate or -(-job.points // 2),
            "review_status": "draft",
            "created_by": "ai-generator",
            "created_at": _now(),
        }
    )
    return document


def seed_questions(
    generator: ContentGenerator,
    store: DocumentStore,
    task: ResumableTask,
    subjects: Sequence[str],
    per_chapter: int = 3,
    seed: int = 0,
) -> SeedingSummary:
    """Generate, validate, and store questions; document ids equal item ids so reruns overwrite."""

    def process(item: WorkItem) -> str:
        job: QuestionJob = item.payload
        logger.debug("Generating {} question for {} / {}", job.question_type, job.subject, job.chapter)
        text = generator.generate(job.prompt())
        document = build_question_document(job, text)
        try:
            store.put(QUESTIONS_COLLECTION, item.item_id, document)
        except OSError as exc:
            raise FatalSeedingError(f"document store unavailable: {exc}") from exc
        return item.item_id

    return task.run(plan_question_jobs(subjects, per_chapter, seed), process)
