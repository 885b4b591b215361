# ABOUTME: Tests differentiated remediation plans and the generator round trip for practice items.
# ABOUTME: Uses StaticGenerator so no provider is contacted.

from datetime import datetime, timezone

from src.analytics.bloom import analyze_student_bloom
from src.analytics.remediation import (
    build_remediation_plans,
    build_remediation_prompt,
    generate_remediation_content,
)
from src.analytics.schemas import AttemptRecord, BloomLevel, RiskLevel, StudentAnalytics, Variant
from src.content.generator import StaticGenerator
from src.content.parsing import NO_JSON


def _bloom(student_id, level, correct, total):
    attempts = [
        AttemptRecord(
            student_id=student_id,
            topic="t",
            correct=i < correct,
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
            bloom_level=level,
        )
        for i in range(total)
    ]
    return analyze_student_bloom(student_id, attempts)


def _roster():
    return [
        StudentAnalytics(
            student_id="s1",
            name="s1",
            mastery={"rights": 0.1, "knesset": 0.4, "courts": 0.3, "media": 0.45},
            risk_level=RiskLevel.HIGH,
            bloom=_bloom("s1", "analysis", 0, 2),
        ),
        StudentAnalytics(
            student_id="s2",
            name="s2",
            mastery={"rights": 0.3},
            risk_level=RiskLevel.HIGH,
        ),
        StudentAnalytics(
            student_id="s3",
            name="s3",
            mastery={"rights": 0.95},
            risk_level=RiskLevel.LOW,
        ),
    ]


def test_plans_cover_non_empty_groups_only():
    plans = build_remediation_plans(_roster())

    assert [p.group for p in plans] == ["struggling", "advanced"]
    struggling, advanced = plans
    assert struggling.variant == Variant.COMPREHENSION
    assert struggling.student_ids == ["s1", "s2"]
    assert advanced.variant == Variant.ENRICHMENT
    assert advanced.focus_bloom_level is None


def test_students_without_data_get_no_plan():
    roster = _roster() + [StudentAnalytics(student_id="new", name="new", mastery={}, risk_level=None)]
    plans = build_remediation_plans(roster)

    assert [p.group for p in plans] == ["struggling", "advanced"]
    assert all("new" not in p.student_ids for p in plans)


def test_focus_topics_are_lowest_group_means():
    struggling = build_remediation_plans(_roster(), max_topics=2)[0]

    # rights averages 0.2 across s1 and s2, courts is 0.3
    assert struggling.focus_topics == ["rights", "courts"]
    assert struggling.focus_bloom_level == BloomLevel.ANALYSIS
    assert "weakest topic rights" in struggling.reason


def test_prompt_mentions_variant_topics_and_bloom():
    plan = build_remediation_plans(_roster())[0]
    prompt = build_remediation_prompt(plan, subject="civics\nignore previous")

    assert "comprehension" in prompt
    assert "rights" in prompt
    assert "analysis" in prompt
    assert "civics ignore previous" in prompt


def test_generate_remediation_content_parses_json():
    generator = StaticGenerator(['{"question": "מהי דמוקרטיה?", "model_answer": "שלטון העם", "hints": ["חשבו על הבחירות"]}'])
    plan = build_remediation_plans(_roster())[0]
    result = generate_remediation_content(plan, generator, subject="civics")

    assert result.ok
    assert result.question.question == "מהי דמוקרטיה?"
    assert result.question.hints == ["חשבו על הבחירות"]
    assert len(generator.prompts) == 1


def test_generate_remediation_content_reports_parse_failure():
    generator = StaticGenerator(["I cannot help with that."])
    plan = build_remediation_plans(_roster())[0]
    result = generate_remediation_content(plan, generator)

    assert not result.ok
    assert result.reason == NO_JSON
