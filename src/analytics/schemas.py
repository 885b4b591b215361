# ABOUTME: Defines canonical data structures shared by every analytics component.
# ABOUTME: Centralizes journey, attempt, Bloom, motivation, and gaming record definitions.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class NodeType(str, Enum):
    CONTENT = "content"
    QUESTION = "question"
    REMEDIATION = "remediation"


class NodeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    VIEWED = "viewed"
    SKIPPED = "skipped"


class Variant(str, Enum):
    """Difficulty tier chosen by the adaptive engine."""

    COMPREHENSION = "comprehension"
    APPLICATION = "application"
    ENRICHMENT = "enrichment"


class Connection(str, Enum):
    SEQUENTIAL = "sequential"
    BRANCHED = "branched"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BloomLevel(str, Enum):
    KNOWLEDGE = "knowledge"
    COMPREHENSION = "comprehension"
    APPLICATION = "application"
    ANALYSIS = "analysis"
    SYNTHESIS = "synthesis"
    EVALUATION = "evaluation"


BLOOM_LEVELS_ORDERED: List[BloomLevel] = [
    BloomLevel.KNOWLEDGE,
    BloomLevel.COMPREHENSION,
    BloomLevel.APPLICATION,
    BloomLevel.ANALYSIS,
    BloomLevel.SYNTHESIS,
    BloomLevel.EVALUATION,
]

# Worst first; index order is used when taking the "worse" of two tiers.
RISK_ORDER: List[RiskLevel] = [RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW]

VARIANT_LABELS_HE: Dict[Variant, str] = {
    Variant.COMPREHENSION: "הבנה",
    Variant.APPLICATION: "יישום",
    Variant.ENRICHMENT: "העמקה",
}

_VARIANT_ALIASES: Dict[str, Variant] = {
    **{variant.value: variant for variant in Variant},
    **{label: variant for variant, label in VARIANT_LABELS_HE.items()},
    "understanding": Variant.COMPREHENSION,
    "deepening": Variant.ENRICHMENT,
}


def parse_variant(value: Optional[str]) -> Optional[Variant]:
    """Accept English keys or the Hebrew labels stored by the adaptive engine."""
    if value is None:
        return None
    if isinstance(value, Variant):
        return value
    return _VARIANT_ALIASES.get(str(value).strip().lower())


def parse_connection(value: Optional[str]) -> Connection:
    if isinstance(value, Connection):
        return value
    if value is not None and str(value).strip().lower() == "branched":
        return Connection.BRANCHED
    # "direct" is the legacy name for sequential.
    return Connection.SEQUENTIAL


@dataclass(frozen=True)
class JourneyNode:
    """One step of a student's traversal of an activity."""

    node_id: str
    type: NodeType
    status: NodeStatus
    timestamp: float
    variant_used: Optional[Variant] = None
    connection: Connection = Connection.SEQUENTIAL
    block_id: Optional[str] = None
    block_type: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AttemptRecord:
    """Canonical graded attempt produced from raw session documents."""

    student_id: str
    topic: str
    correct: bool
    timestamp: datetime
    bloom_level: Optional[str] = None
    hint_used: bool = False
    response_time_seconds: Optional[float] = None
    question_id: Optional[str] = None
    question_type: Optional[str] = None


@dataclass(frozen=True)
class PerformanceSummary:
    accuracy: float
    hint_dependency: float
    avg_response_time: float
    total_questions: int


@dataclass(frozen=True)
class BloomScore:
    level: BloomLevel
    correct: int
    total: int
    percentage: Optional[int]  # None means "no data", never 0

    @property
    def has_data(self) -> bool:
        return self.total > 0


@dataclass(frozen=True)
class StudentBloomProfile:
    student_id: str
    scores: Dict[BloomLevel, BloomScore]
    overall_score: Optional[int]
    weakest_level: Optional[BloomLevel]
    strongest_level: Optional[BloomLevel]

    @property
    def has_data(self) -> bool:
        return any(score.has_data for score in self.scores.values())


@dataclass(frozen=True)
class BloomDistributionEntry:
    level: BloomLevel
    success_rate: Optional[int]
    question_count: int
    student_count: int


@dataclass(frozen=True)
class ClassBloomSummary:
    average_by_level: Dict[BloomLevel, Optional[int]]
    common_weakness: Optional[BloomLevel]
    common_strength: Optional[BloomLevel]
    distribution: List[BloomDistributionEntry]
    student_count: int

    @property
    def has_data(self) -> bool:
        return any(value is not None for value in self.average_by_level.values())


@dataclass(frozen=True)
class MotivationFactor:
    name: str
    value: float
    max_value: float
    trend: str  # up / down / stable, display only


@dataclass(frozen=True)
class MotivationScore:
    level: str  # high / medium / low
    score: int
    factors: List[MotivationFactor]


@dataclass
class GamingAlert:
    alert_type: str
    severity: str
    confidence: float
    evidence: List[str]
    recommendation: str


@dataclass
class GamingAnalysis:
    has_gaming: bool
    alerts: List[GamingAlert]
    overall_risk: str  # none / low / medium / high
    summary: str


@dataclass(frozen=True)
class SubmissionAnswer:
    question_id: str
    selected_option: Optional[str] = None
    text: Optional[str] = None


@dataclass(frozen=True)
class Submission:
    """A task submission with the telemetry the gaming detectors inspect.

    Every telemetry field is optional; detectors stay silent when the
    signal they need is missing.
    """

    student_id: str
    answers: List[SubmissionAnswer] = field(default_factory=list)
    response_times: Optional[List[float]] = None
    total_blocks: Optional[int] = None
    success_blocks: Optional[int] = None
    time_spent_seconds: Optional[float] = None
    tab_switches: Optional[int] = None
    hints_used: Optional[Mapping[str, int]] = None


@dataclass
class StudentAnalytics:
    """Per-student bundle consumed by the motivation scorer and class aggregator."""

    student_id: str
    name: str
    mastery: Dict[str, float]
    risk_level: Optional[RiskLevel]
    journey: List[JourneyNode] = field(default_factory=list)
    performance: Optional[PerformanceSummary] = None
    bloom: Optional[StudentBloomProfile] = None
    error_patterns: Dict[str, int] = field(default_factory=dict)
    attempts: List[AttemptRecord] = field(default_factory=list)
