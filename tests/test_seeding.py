# ABOUTME: Tests the resumable seeding runner, checkpoint persistence, and question seeding.
# ABOUTME: Sleeps are recorded instead of slept; generators and stores are in-memory.

import json

import pytest

from src.analytics.policy import SeedingPolicy
from src.common.errors import ContentParseError, FatalSeedingError
from src.content.generator import StaticGenerator
from src.content.prompts import QUESTION_TYPE_DISTRIBUTION, SUBJECTS, default_rubric, points_for, topics_from_chapter
from src.content.seeding import (
    QUESTIONS_COLLECTION,
    Checkpoint,
    CheckpointStore,
    QuestionJob,
    ResumableTask,
    WorkItem,
    build_question_document,
    plan_question_jobs,
    seed_questions,
)
from src.storage.document_store import InMemoryDocumentStore

VALID = '{"question": "מהי מדינה?", "model_answer": "ישות ריבונית", "hints": ["ריבונות"]}'


def _items(*ids):
    return [WorkItem(item_id=i) for i in ids]


def _task(tmp_path, sleeps, **kwargs):
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("cooldown_seconds", 30.0)
    kwargs.setdefault("delay_seconds", 1.5)
    return ResumableTask("batch", CheckpointStore(tmp_path), sleep=sleeps.append, **kwargs)


def test_checkpoint_store_round_trip(tmp_path):
    store = CheckpointStore(tmp_path)
    checkpoint = Checkpoint(task="seed/all", completed={"a": "a"}, failed={"b": "boom"}, total_processed=2)
    store.save(checkpoint)

    assert store.path_for("seed/all").name == "seed_all.checkpoint.json"
    loaded = store.load("seed/all")
    assert loaded.completed == {"a": "a"}
    assert loaded.failed == {"b": "boom"}
    assert loaded.total_processed == 2

    store.reset("seed/all")
    assert store.load("seed/all").completed == {}


def test_checkpoint_store_rejects_other_task(tmp_path):
    store = CheckpointStore(tmp_path)
    store.path_for("mine").write_text(json.dumps({"task": "theirs"}), encoding="utf-8")

    with pytest.raises(ValueError, match="theirs"):
        store.load("mine")


def test_run_processes_items_with_delay_between(tmp_path):
    sleeps = []
    summary = _task(tmp_path, sleeps).run(_items("a", "b", "c"), lambda item: item.item_id.upper())

    assert summary.succeeded == ["a", "b", "c"]
    assert summary.failed == {}
    assert sleeps == [1.5, 1.5]
    checkpoint = CheckpointStore(tmp_path).load("batch")
    assert checkpoint.completed == {"a": "A", "b": "B", "c": "C"}
    assert checkpoint.total_processed == 3


def test_retries_with_cooldown_then_succeeds(tmp_path):
    sleeps = []
    calls = {"n": 0}

    def flaky(item):
        calls["n"] += 1
        if calls["n"] < 3:
            raise RuntimeError("temporary")
        return "ok"

    summary = _task(tmp_path, sleeps).run(_items("a"), flaky)

    assert summary.succeeded == ["a"]
    assert calls["n"] == 3
    assert sleeps == [30.0, 30.0]


def test_item_failure_is_recorded_and_batch_continues(tmp_path):
    sleeps = []

    def process(item):
        if item.item_id == "bad":
            raise RuntimeError("always broken")
        return item.item_id

    summary = _task(tmp_path, sleeps, max_attempts=2).run(_items("a", "bad", "c"), process)

    assert summary.succeeded == ["a", "c"]
    assert summary.failed == {"bad": "always broken"}
    assert summary.total_errors == 1
    # delay before "bad", one cooldown between its two attempts, delay before "c"
    assert sleeps == [1.5, 30.0, 1.5]
    checkpoint = CheckpointStore(tmp_path).load("batch")
    assert checkpoint.failed == {"bad": "always broken"}
    assert checkpoint.total_errors == 1


def test_resume_skips_completed_and_retries_failed(tmp_path):
    sleeps = []
    broken = {"b"}

    def process(item):
        if item.item_id in broken:
            raise RuntimeError("down")
        return item.item_id

    first = _task(tmp_path, sleeps, max_attempts=1).run(_items("a", "b"), process)
    assert first.failed == {"b": "down"}

    broken.clear()
    second = _task(tmp_path, sleeps, max_attempts=1).run(_items("a", "b"), process)

    assert second.skipped == ["a"]
    assert second.succeeded == ["b"]
    checkpoint = CheckpointStore(tmp_path).load("batch")
    assert checkpoint.failed == {}
    assert set(checkpoint.completed) == {"a", "b"}


def test_fatal_error_stops_and_keeps_progress(tmp_path):
    sleeps = []

    def process(item):
        if item.item_id == "b":
            raise FatalSeedingError("disk full")
        return item.item_id

    summary = _task(tmp_path, sleeps).run(_items("a", "b", "c"), process)

    assert summary.stopped
    assert summary.stop_reason == "disk full"
    assert summary.succeeded == ["a"]
    assert 30.0 not in sleeps
    assert CheckpointStore(tmp_path).load("batch").completed == {"a": "a"}


def test_from_policy(tmp_path):
    task = ResumableTask.from_policy(
        "batch", CheckpointStore(tmp_path), SeedingPolicy(max_attempts=5, cooldown_seconds=2, delay_between_items_seconds=0)
    )
    assert task.max_attempts == 5
    assert task.cooldown_seconds == 2
    assert task.delay_seconds == 0

    with pytest.raises(ValueError):
        ResumableTask("batch", CheckpointStore(tmp_path), max_attempts=0)


def test_plan_question_jobs_is_deterministic():
    first = plan_question_jobs(["civics"], per_chapter=4, seed=7)
    second = plan_question_jobs(["civics"], per_chapter=4, seed=7)

    assert [i.item_id for i in first] == [i.item_id for i in second]
    assert [i.payload.difficulty for i in first] == [i.payload.difficulty for i in second]
    assert len(first) == 4 * len(SUBJECTS["civics"].chapters)
    assert first[0].item_id == "civics-00-00"
    assert first[3].payload.question_type == QUESTION_TYPE_DISTRIBUTION[3]
    for item in first:
        job = item.payload
        assert job.points == points_for(job.question_type, job.difficulty)
        assert job.topic in topics_from_chapter(job.chapter)


def test_plan_question_jobs_unknown_subject():
    with pytest.raises(ValueError, match="Unknown subject"):
        plan_question_jobs(["chemistry"], per_chapter=1)


def test_default_rubric_splits_points():
    rubric = default_rubric("open", 20)

    assert [r["max_points"] for r in rubric] == [6, 6, 8]
    assert rubric[0]["levels"][1]["points"] == 3
    assert default_rubric("multiple-choice", 5) == []


def test_build_question_document_fills_rubric_and_metadata():
    job = QuestionJob(
        subject="civics", chapter="מבוא - מהי מדינה ומה תפקידיה", topic="מבוא", question_type="open", difficulty=2, points=15
    )
    document = build_question_document(job, VALID)

    assert document["question"] == "מהי מדינה?"
    assert document["rubric"] == default_rubric("open", 15)
    assert "options" not in document
    assert document["review_status"] == "draft"
    assert document["created_by"] == "ai-generator"
    assert document["time_estimate"] == 8
    assert document["subject"] == "civics"


def test_build_question_document_rejects_bad_output():
    job = QuestionJob(subject="civics", chapter="c", topic="c", question_type="open", difficulty=1, points=10)
    with pytest.raises(ContentParseError):
        build_question_document(job, "no json at all")


def test_seed_questions_stores_documents(tmp_path):
    sleeps = []
    store = InMemoryDocumentStore()
    generator = StaticGenerator([VALID])
    task = _task(tmp_path, sleeps, delay_seconds=0)

    summary = seed_questions(generator, store, task, ["bible"], per_chapter=2, seed=1)

    expected = len(SUBJECTS["bible"].chapters) * 2
    assert len(summary.succeeded) == expected
    assert len(store.query(QUESTIONS_COLLECTION)) == expected
    assert store.get(QUESTIONS_COLLECTION, "bible-00-00")["subject"] == "bible"
    assert len(generator.prompts) == expected

    rerun = seed_questions(generator, store, task, ["bible"], per_chapter=2, seed=1)
    assert len(rerun.skipped) == expected
    assert len(generator.prompts) == expected


def test_seed_questions_records_unparseable_items(tmp_path):
    sleeps = []
    store = InMemoryDocumentStore()
    generator = StaticGenerator(["not json"])
    task = _task(tmp_path, sleeps, max_attempts=2, delay_seconds=0)

    summary = seed_questions(generator, store, task, ["literature"], per_chapter=1)

    assert summary.succeeded == []
    assert len(summary.failed) == len(SUBJECTS["literature"].chapters)
    assert all(reason.startswith("no_json") for reason in summary.failed.values())
    assert store.query(QUESTIONS_COLLECTION) == []


def test_seed_questions_stops_when_store_fails(tmp_path):
    class BrokenStore(InMemoryDocumentStore):
        def put(self, collection, doc_id, document):
            raise OSError("read-only file system")

    sleeps = []
    task = _task(tmp_path, sleeps, delay_seconds=0)
    summary = seed_questions(StaticGenerator([VALID]), BrokenStore(), task, ["history"], per_chapter=1)

    assert summary.stopped
    assert "read-only" in summary.stop_reason
    assert summary.succeeded == []
