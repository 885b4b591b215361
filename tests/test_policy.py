# ABOUTME: Tests loading the analytics policy from YAML and rejecting unknown keys.
# ABOUTME: Confirms the shipped config matches the built-in defaults.

from pathlib import Path

import pytest

from src.analytics.policy import DEFAULT_POLICY, load_policy, policy_from_dict

CONFIG = Path(__file__).resolve().parents[1] / "configs" / "analytics_policy.yaml"


def test_load_policy_without_path_returns_defaults():
    assert load_policy() is DEFAULT_POLICY


def test_shipped_config_matches_defaults():
    assert load_policy(CONFIG) == DEFAULT_POLICY


def test_partial_override_keeps_other_defaults(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text("risk:\n  low_threshold: 0.6\ngaming:\n  quick_skip_streak: 4\n", encoding="utf-8")

    policy = load_policy(path)

    assert policy.risk.low_threshold == 0.6
    assert policy.risk.high_threshold == DEFAULT_POLICY.risk.high_threshold
    assert policy.gaming.quick_skip_streak == 4
    assert policy.motivation == DEFAULT_POLICY.motivation


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_policy(path) == DEFAULT_POLICY


def test_unknown_section_raises():
    with pytest.raises(ValueError, match="Unknown policy sections"):
        policy_from_dict({"leaderboard": {}})


def test_unknown_key_raises():
    with pytest.raises(ValueError, match="low_treshold"):
        policy_from_dict({"risk": {"low_treshold": 0.4}})


def test_non_mapping_file_raises(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_policy(path)
