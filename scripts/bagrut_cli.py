# ABOUTME: CLI for student and class analytics reports, gaming checks, and question seeding.
# ABOUTME: Reads raw records from a JSON-directory document store and prints rich tables.

import json
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from src.analytics.bloom import BLOOM_LABELS_HE
from src.analytics.class_aggregation import summarize_class
from src.analytics.features import attempts_to_frame, build_performance_features
from src.analytics.gaming_detection import EFFORT_LABELS_HE, GAMING_LABELS_HE, classify_effort
from src.analytics.insights import format_insight
from src.analytics.journey import journey_stats
from src.analytics.policy import load_policy
from src.analytics.remediation import build_remediation_plans
from src.analytics.service import AnalyticsService
from src.common.errors import DocumentNotFoundError
from src.content.generator import GeneratorConfig, StaticGenerator, build_generator
from src.content.prompts import SUBJECTS
from src.content.seeding import QUESTIONS_COLLECTION, CheckpointStore, ResumableTask, SeedingSummary, seed_questions
from src.storage.document_store import InMemoryDocumentStore, JsonDirectoryStore
from src.storage.records import export_attempts

console = Console()
app = typer.Typer(help="Bagrut practice analytics: reports, gaming checks, and question seeding.")

SEVERITY_COLORS = {"low": "yellow", "medium": "orange3", "high": "red"}
RISK_COLORS = {"high": "red", "medium": "yellow", "low": "green", "insufficient data": "dim"}

DRY_RUN_RESPONSE = json.dumps(
    {
        "question": "[dry run] placeholder question",
        "model_answer": "[dry run] placeholder answer",
        "options": ["A", "B", "C", "D"],
        "correct_option_index": 0,
    }
)


def _default_store_dir() -> Path:
    return Path("data/store")


def _service(store_dir: Path, policy: Optional[Path]) -> AnalyticsService:
    return AnalyticsService(JsonDirectoryStore(store_dir), load_policy(policy))


def _pct(value: Optional[float]) -> str:
    return "no data" if value is None else f"{value:.0%}"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging.")) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format="<level>{message}</level>")


@app.command("student-report")
def student_report(
    student_id: str = typer.Option(..., "--student-id", help="Student document id."),
    store_dir: Path = typer.Option(_default_store_dir(), "--store-dir", help="JSON document store directory."),
    policy: Optional[Path] = typer.Option(None, "--policy", help="Analytics policy YAML; defaults to built-in values."),
    llm: bool = typer.Option(False, "--llm", help="Ask the configured LLM for the insight text."),
) -> None:
    """
    Mastery, risk, Bloom profile, motivation, and journey summary for one student.
    """
    service = _service(store_dir, policy)
    try:
        student = service.student_analytics(student_id)
    except DocumentNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    risk = student.risk_level.value if student.risk_level else "insufficient data"
    console.rule(f"[bold blue]{student.name}[/bold blue]")
    console.print(f"[bold]Risk:[/] [{RISK_COLORS[risk]}]{risk}[/{RISK_COLORS[risk]}]")
    if student.performance is None:
        console.print("[yellow]Insufficient data: no graded attempts yet.[/yellow]")
    else:
        perf = student.performance
        console.print(
            f"[bold]Accuracy:[/] {perf.accuracy:.0%}  [bold]Hint use:[/] {perf.hint_dependency:.0%}  "
            f"[bold]Questions:[/] {perf.total_questions}"
        )

    if student.mastery:
        mastery_table = Table(show_header=True, header_style="bold magenta", title="Mastery")
        mastery_table.add_column("Topic")
        mastery_table.add_column("Mastery")
        for topic, value in sorted(student.mastery.items()):
            mastery_table.add_row(topic, f"{value:.2f}")
        console.print(mastery_table)

    if student.bloom is not None and student.bloom.has_data:
        bloom_table = Table(show_header=True, header_style="bold magenta", title="Bloom profile")
        bloom_table.add_column("Level")
        bloom_table.add_column("Correct / Total")
        bloom_table.add_column("Score")
        for level, score in student.bloom.scores.items():
            shown = "no data" if score.percentage is None else f"{score.percentage}%"
            bloom_table.add_row(f"{level.value} ({BLOOM_LABELS_HE[level]})", f"{score.correct}/{score.total}", shown)
        console.print(bloom_table)

    motivation = service.motivation(student)
    motivation_table = Table(show_header=True, header_style="bold magenta", title=f"Motivation {motivation.score}/100 ({motivation.level})")
    motivation_table.add_column("Factor")
    motivation_table.add_column("Value")
    motivation_table.add_column("Trend")
    for factor in motivation.factors:
        motivation_table.add_row(factor.name, f"{factor.value:.1f} / {factor.max_value:.0f}", factor.trend)
    console.print(motivation_table)

    stats = journey_stats(student.journey)
    completion = "no data" if stats.completion_rate is None else f"{stats.completion_rate}%"
    console.print(
        f"[bold]Journey:[/] {stats.success_count} success, {stats.failure_count} failure, "
        f"{stats.remediation_count} remediation, completion {completion}"
    )

    generator = build_generator(GeneratorConfig.from_env()) if llm else None
    console.print(format_insight(service.student_insight(student_id, generator)))


@app.command("class-report")
def class_report(
    class_id: str = typer.Option(..., "--class-id", help="Class identifier stored on student documents."),
    store_dir: Path = typer.Option(_default_store_dir(), "--store-dir", help="JSON document store directory."),
    policy: Optional[Path] = typer.Option(None, "--policy", help="Analytics policy YAML; defaults to built-in values."),
) -> None:
    """
    Class averages, topic distribution, risk buckets, Bloom summary, and remediation groups.
    """
    service = _service(store_dir, policy)
    students = service.class_students(class_id)
    if not students:
        console.print(f"[yellow]No students found for class {class_id}[/yellow]")
        raise typer.Exit(code=1)

    summary = summarize_class(students)
    console.rule(f"[bold blue]Class {class_id}[/bold blue]")
    console.print(
        f"[bold]Students:[/] {summary.student_count}  [bold]Avg accuracy:[/] {_pct(summary.average_accuracy)}  "
        f"[bold]Avg hint use:[/] {_pct(summary.average_hint_dependency)}"
    )
    console.print(
        "[bold]Risk:[/] "
        + ", ".join(f"{level.value} {count}" for level, count in summary.risk_counts.items())
    )
    if summary.insufficient_data:
        console.print(f"[yellow]Insufficient data: {', '.join(summary.insufficient_data)}[/yellow]")

    roster = build_performance_features(attempts_to_frame(a for s in students for a in s.attempts))
    names = {s.student_id: s.name for s in students}
    roster_table = Table(show_header=True, header_style="bold magenta", title="Roster")
    roster_table.add_column("Student")
    roster_table.add_column("Questions")
    roster_table.add_column("Accuracy")
    roster_table.add_column("Hint use")
    roster_table.add_column("Median time (s)")
    for _, row in roster.iterrows():
        median = "n/a" if pd.isna(row["median_response_time"]) else f"{row['median_response_time']:.1f}"
        roster_table.add_row(
            names.get(row["student_id"], row["student_id"]),
            str(row["total_questions"]),
            f"{row['accuracy']:.0%}",
            f"{row['hint_dependency']:.0%}",
            median,
        )
    console.print(roster_table)

    topic_table = Table(show_header=True, header_style="bold magenta", title="Topics")
    topic_table.add_column("Topic")
    topic_table.add_column("Mean")
    topic_table.add_column("Min")
    topic_table.add_column("Max")
    topic_table.add_column("Students")
    for dist in summary.topics.values():
        topic_table.add_row(dist.topic, f"{dist.mean:.2f}", f"{dist.minimum:.2f}", f"{dist.maximum:.2f}", str(dist.student_count))
    console.print(topic_table)
    console.print(f"[bold]Weakest topic:[/] {summary.weakest_topic or 'no data'}  [bold]Strongest:[/] {summary.strongest_topic or 'no data'}")

    if summary.bloom is not None and summary.bloom.has_data:
        bloom_table = Table(show_header=True, header_style="bold magenta", title="Class Bloom averages")
        bloom_table.add_column("Level")
        bloom_table.add_column("Average")
        bloom_table.add_column("Students with data")
        for entry in summary.bloom.distribution:
            average = summary.bloom.average_by_level[entry.level]
            bloom_table.add_row(entry.level.value, "no data" if average is None else f"{average}%", str(entry.student_count))
        console.print(bloom_table)

    plan_table = Table(show_header=True, header_style="bold magenta", title="Remediation groups")
    plan_table.add_column("Group")
    plan_table.add_column("Variant")
    plan_table.add_column("Students")
    plan_table.add_column("Focus")
    for plan in build_remediation_plans(students):
        plan_table.add_row(plan.group, plan.variant.value, ", ".join(plan.student_ids), ", ".join(plan.focus_topics))
    console.print(plan_table)


@app.command("gaming-check")
def gaming_check(
    submission_id: Optional[str] = typer.Option(None, "--submission-id", help="Submission to check; leave empty to scan all."),
    class_id: Optional[str] = typer.Option(None, "--class-id", help="Limit a scan to one class."),
    store_dir: Path = typer.Option(_default_store_dir(), "--store-dir", help="JSON document store directory."),
    policy: Optional[Path] = typer.Option(None, "--policy", help="Analytics policy YAML; defaults to built-in values."),
    output: Path = typer.Option(Path("reports/gaming_alerts.parquet"), "--output", help="Output parquet for alerts when scanning all."),
    severity: Optional[str] = typer.Option(None, "--severity", help="Optional severity filter for reports."),
) -> None:
    """
    Detect quick skipping, random clicking, answer patterns, copy-paste, and tab switching.
    """
    service = _service(store_dir, policy)

    if submission_id:
        try:
            submission, analysis = service.gaming_analysis(submission_id)
        except DocumentNotFoundError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1)
        effort = classify_effort(submission)
        console.print(f"[bold]Effort:[/] {effort} ({EFFORT_LABELS_HE[effort]})")
        if not analysis.has_gaming:
            console.print(f"[green]✅ No gaming alerts for {submission_id}[/green]")
            return
        for alert in analysis.alerts:
            color = SEVERITY_COLORS.get(alert.severity, "white")
            label = GAMING_LABELS_HE.get(alert.alert_type, alert.alert_type)
            console.print(f"[{color}]{alert.alert_type} / {label} ({alert.severity}, confidence {alert.confidence:.2f})[/{color}]")
            for line in alert.evidence:
                console.print(f"  {line}")
            console.print(f"  → {alert.recommendation}")
        console.print(f"[bold]Overall risk:[/] {analysis.overall_risk}")
        return

    alerts_df = service.gaming_report(class_id)
    if severity:
        alerts_df = alerts_df[alerts_df["severity"] == severity]
    output.parent.mkdir(parents=True, exist_ok=True)
    alerts_df.to_parquet(output, index=False)
    console.print(f"[bold]{len(alerts_df):,} alerts saved to {output}[/bold]")


@app.command("export-attempts")
def export_attempts_cmd(
    class_id: str = typer.Option(..., "--class-id", help="Class identifier stored on student documents."),
    store_dir: Path = typer.Option(_default_store_dir(), "--store-dir", help="JSON document store directory."),
    output: Path = typer.Option(Path("reports/attempts.parquet"), "--output", help="Output parquet path."),
) -> None:
    """
    Export every graded attempt for a class as canonical parquet.
    """
    service = _service(store_dir, None)
    attempts = [attempt for student in service.class_students(class_id) for attempt in student.attempts]
    export_attempts(attempts, output)
    console.print(f"[bold]{len(attempts):,} attempts saved to {output}[/bold]")


def _print_seeding_summary(task_name: str, summary: SeedingSummary) -> None:
    table = Table(show_header=True, header_style="bold magenta", title=f"Seeding {task_name}")
    table.add_column("Outcome")
    table.add_column("Items")
    table.add_row("succeeded", str(len(summary.succeeded)))
    table.add_row("failed", str(len(summary.failed)))
    table.add_row("already done", str(len(summary.skipped)))
    console.print(table)
    for item_id, reason in summary.failed.items():
        console.print(f"[yellow]{item_id}: {reason}[/yellow]")
    if summary.stopped:
        console.print(f"[red]Stopped early: {summary.stop_reason}. Rerun to resume.[/red]")
        raise typer.Exit(code=1)


def _dry_run_seeding(subjects: List[str], count: int, seed: int, policy: Optional[Path]) -> None:
    task_name = f"dry-run-{'-'.join(subjects)}-{count}-{seed}"
    store = InMemoryDocumentStore()
    with tempfile.TemporaryDirectory() as tmp_dir:
        task = ResumableTask.from_policy(
            task_name, CheckpointStore(tmp_dir), load_policy(policy).seeding, sleep=lambda _: None
        )
        summary = seed_questions(
            StaticGenerator([DRY_RUN_RESPONSE]), store, task, subjects, per_chapter=count, seed=seed
        )
    console.print(f"[bold]Dry run:[/bold] {len(store.query(QUESTIONS_COLLECTION))} questions planned; nothing saved")
    _print_seeding_summary(task_name, summary)


@app.command("seed-questions")
def seed_questions_cmd(
    subject: List[str] = typer.Option([], "--subject", help="Subject key; repeat for several."),
    all_subjects: bool = typer.Option(False, "--all", help="Seed every subject in the catalog."),
    count: int = typer.Option(3, "--count", help="Questions per chapter."),
    seed: int = typer.Option(0, "--seed", help="Seed for the difficulty draw; keep it fixed when resuming."),
    store_dir: Path = typer.Option(_default_store_dir(), "--store-dir", help="JSON document store directory."),
    checkpoint_dir: Path = typer.Option(Path("data/checkpoints"), "--checkpoint-dir", help="Where seeding progress is kept."),
    policy: Optional[Path] = typer.Option(None, "--policy", help="Analytics policy YAML with the seeding section."),
    reset: bool = typer.Option(False, "--reset", help="Discard saved progress and start over."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Walk the plan with placeholder questions; no LLM calls, nothing saved."),
) -> None:
    """
    Generate Bagrut questions with the configured LLM and store them, resuming from saved progress.
    """
    subjects = sorted(SUBJECTS) if all_subjects else list(subject)
    if not subjects:
        console.print(f"[yellow]Pass --subject ({', '.join(sorted(SUBJECTS))}) or --all[/yellow]")
        raise typer.Exit(code=1)
    unknown = [s for s in subjects if s not in SUBJECTS]
    if unknown:
        console.print(f"[red]Unknown subject(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(code=1)

    if dry_run:
        _dry_run_seeding(subjects, count, seed, policy)
        return

    config = GeneratorConfig.from_env()
    if not config.api_key:
        console.print(f"[red]No API key set for provider '{config.provider}'[/red]")
        raise typer.Exit(code=1)

    task_name = f"seed-{'-'.join(subjects)}-{count}-{seed}"
    checkpoints = CheckpointStore(checkpoint_dir)
    if reset:
        checkpoints.reset(task_name)
    task = ResumableTask.from_policy(task_name, checkpoints, load_policy(policy).seeding)

    summary = seed_questions(
        build_generator(config),
        JsonDirectoryStore(store_dir),
        task,
        subjects,
        per_chapter=count,
        seed=seed,
    )
    _print_seeding_summary(task_name, summary)


if __name__ == "__main__":
    app()
