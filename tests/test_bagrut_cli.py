# ABOUTME: Verifies the Bagrut CLI exposes its commands and runs them against a temp JSON store.
# ABOUTME: The LLM generator is replaced with a static one so no provider is called.

from typer.testing import CliRunner

from scripts import bagrut_cli
from src.content.generator import StaticGenerator
from src.storage.document_store import JsonDirectoryStore

runner = CliRunner()

BASE_MS = 1714550400000
VALID = '{"question": "מהי מדינה?", "model_answer": "ישות ריבונית"}'


def _seed_store(root):
    store = JsonDirectoryStore(root)
    store.put("students", "s1", {"name": "Noa", "classId": "10a"})
    store.put("students", "s2", {"name": "Omer", "classId": "10a"})
    store.put(
        "sessions",
        "sess1",
        {
            "studentId": "s1",
            "topic": "rights",
            "interactions": [
                {"questionId": f"q{i}", "type": "multiple-choice", "isCorrect": i % 2 == 0, "timestamp": BASE_MS + i * 1000}
                for i in range(6)
            ],
        },
    )
    store.put(
        "submissions",
        "sub1",
        {"studentId": "s1", "answers": {}, "telemetry": {"responseTimes": [1, 1, 1, 1]}},
    )
    return root


def test_cli_has_report_gaming_and_seeding_commands():
    app = bagrut_cli.app
    command_names = {cmd.name or cmd.callback.__name__ for cmd in app.registered_commands}
    assert {"student-report", "class-report", "gaming-check", "export-attempts", "seed-questions"} <= command_names


def test_student_report(tmp_path):
    store_dir = _seed_store(tmp_path / "store")
    result = runner.invoke(bagrut_cli.app, ["student-report", "--student-id", "s1", "--store-dir", str(store_dir)])

    assert result.exit_code == 0, result.output
    assert "Noa" in result.output
    assert "Motivation" in result.output
    assert "Insight:" in result.output


def test_student_report_unknown_student(tmp_path):
    store_dir = _seed_store(tmp_path / "store")
    result = runner.invoke(bagrut_cli.app, ["student-report", "--student-id", "ghost", "--store-dir", str(store_dir)])
    assert result.exit_code == 1


def test_class_report(tmp_path):
    store_dir = _seed_store(tmp_path / "store")
    result = runner.invoke(bagrut_cli.app, ["class-report", "--class-id", "10a", "--store-dir", str(store_dir)])

    assert result.exit_code == 0, result.output
    assert "Class 10a" in result.output
    assert "Remediation groups" in result.output

    missing = runner.invoke(bagrut_cli.app, ["class-report", "--class-id", "99z", "--store-dir", str(store_dir)])
    assert missing.exit_code == 1


def test_gaming_check_single_and_scan(tmp_path):
    store_dir = _seed_store(tmp_path / "store")
    single = runner.invoke(bagrut_cli.app, ["gaming-check", "--submission-id", "sub1", "--store-dir", str(store_dir)])

    assert single.exit_code == 0, single.output
    assert "quick_skip" in single.output

    output = tmp_path / "alerts.parquet"
    scan = runner.invoke(bagrut_cli.app, ["gaming-check", "--store-dir", str(store_dir), "--output", str(output)])
    assert scan.exit_code == 0, scan.output
    assert output.exists()


def test_export_attempts(tmp_path):
    store_dir = _seed_store(tmp_path / "store")
    output = tmp_path / "attempts.parquet"
    result = runner.invoke(
        bagrut_cli.app, ["export-attempts", "--class-id", "10a", "--store-dir", str(store_dir), "--output", str(output)]
    )

    assert result.exit_code == 0, result.output
    assert output.exists()
    assert "6 attempts" in result.output


def test_seed_questions_requires_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_PROVIDER", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    result = runner.invoke(bagrut_cli.app, ["seed-questions", "--subject", "bible", "--store-dir", str(tmp_path)])
    assert result.exit_code == 1


def test_seed_questions_rejects_unknown_subject(tmp_path):
    result = runner.invoke(bagrut_cli.app, ["seed-questions", "--subject", "chemistry", "--store-dir", str(tmp_path)])
    assert result.exit_code == 1


def test_seed_questions_with_static_generator(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "test_key")
    monkeypatch.setattr(bagrut_cli, "build_generator", lambda config: StaticGenerator([VALID]))
    policy = tmp_path / "policy.yaml"
    policy.write_text("seeding:\n  delay_between_items_seconds: 0\n  cooldown_seconds: 0\n", encoding="utf-8")
    store_dir = tmp_path / "store"

    result = runner.invoke(
        bagrut_cli.app,
        [
            "seed-questions",
            "--subject",
            "bible",
            "--count",
            "1",
            "--store-dir",
            str(store_dir),
            "--checkpoint-dir",
            str(tmp_path / "checkpoints"),
            "--policy",
            str(policy),
        ],
    )

    assert result.exit_code == 0, result.output
    assert len(JsonDirectoryStore(store_dir).query("questions")) == 3


def test_seed_questions_dry_run_needs_no_key_and_saves_nothing(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_PROVIDER", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    store_dir = tmp_path / "store"
    checkpoint_dir = tmp_path / "checkpoints"

    result = runner.invoke(
        bagrut_cli.app,
        [
            "seed-questions",
            "--subject",
            "bible",
            "--count",
            "1",
            "--dry-run",
            "--store-dir",
            str(store_dir),
            "--checkpoint-dir",
            str(checkpoint_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "3 questions planned" in result.output
    assert not store_dir.exists()
    assert not checkpoint_dir.exists()
