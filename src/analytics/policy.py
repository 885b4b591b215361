# ABOUTME: Holds the tunable thresholds and weights behind risk, motivation, and gaming heuristics.
# ABOUTME: Loads overrides from a YAML policy file so the numbers stay replaceable configuration.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger


@dataclass(frozen=True)
class RiskPolicy:
    # Mastery-only tiers.
    low_threshold: float = 0.5
    high_threshold: float = 0.8
    # Performance rule: any "high" condition wins, then any "medium" condition.
    high_risk_accuracy: float = 0.4
    high_risk_hint_dependency: float = 0.7
    high_risk_mastery: float = 0.3
    medium_risk_accuracy: float = 0.7
    medium_risk_hint_dependency: float = 0.4
    medium_risk_mastery: float = 0.6


@dataclass(frozen=True)
class MotivationPolicy:
    accuracy_cap: float = 30.0
    accuracy_weight: float = 0.3
    independence_cap: float = 25.0
    progress_cap: float = 25.0
    engagement_cap: float = 20.0
    engagement_per_question: float = 2.0
    high_tier: int = 70
    medium_tier: int = 40


@dataclass(frozen=True)
class GamingPolicy:
    quick_skip_seconds: float = 3.0
    quick_skip_streak: int = 3
    random_accuracy: float = 0.25
    pattern_min_answers: int = 5
    pattern_dominant_ratio: float = 0.7
    copy_paste_similarity: float = 0.9
    copy_paste_min_length: int = 20
    tab_switches_per_minute: float = 3.0


@dataclass(frozen=True)
class SeedingPolicy:
    max_attempts: int = 3
    cooldown_seconds: float = 30.0
    delay_between_items_seconds: float = 1.5


@dataclass(frozen=True)
class AnalyticsPolicy:
    risk: RiskPolicy = field(default_factory=RiskPolicy)
    motivation: MotivationPolicy = field(default_factory=MotivationPolicy)
    gaming: GamingPolicy = field(default_factory=GamingPolicy)
    seeding: SeedingPolicy = field(default_factory=SeedingPolicy)


DEFAULT_POLICY = AnalyticsPolicy()


def load_policy(path: Optional[Union[str, Path]] = None) -> AnalyticsPolicy:
    """
    Load an AnalyticsPolicy from YAML, falling back to defaults for any key not given.

    The file holds one mapping per section (risk, motivation, gaming, seeding).
    Unknown sections or keys raise ValueError so typos do not silently keep defaults.
    """

    if path is None:
        return DEFAULT_POLICY
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Policy file {path} must contain a mapping at the top level.")

    logger.debug("Loading analytics policy from {}", path)
    return policy_from_dict(raw)


def policy_from_dict(raw: Dict[str, Any]) -> AnalyticsPolicy:
    sections = {f.name: getattr(DEFAULT_POLICY, f.name) for f in fields(AnalyticsPolicy)}
    unknown = set(raw) - set(sections)
    if unknown:
        raise ValueError(f"Unknown policy sections: {', '.join(sorted(unknown))}")

    updated = {}
    for name, default_section in sections.items():
        overrides = raw.get(name) or {}
        allowed = {f.name for f in fields(default_section)}
        bad_keys = set(overrides) - allowed
        if bad_keys:
            raise ValueError(f"Unknown keys in policy section '{name}': {', '.join(sorted(bad_keys))}")
        updated[name] = replace(default_section, **overrides)
    return AnalyticsPolicy(**updated)
