# ABOUTME: Summarizes and validates the ordered journey of content, question, and remediation nodes.
# ABOUTME: Also folds adaptive-engine events (variant picks, scaffolding) back into journey nodes.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from src.common.errors import JourneyError
from src.common.numeric import percentage

from .schemas import Connection, JourneyNode, NodeStatus, NodeType, Variant, parse_variant


@dataclass(frozen=True)
class JourneyStats:
    success_count: int
    failure_count: int
    remediation_count: int
    total: int
    completion_rate: Optional[int]  # None when no graded node exists
    success_rate: float
    variant_counts: Dict[Variant, int] = field(default_factory=dict)
    starting_variant: Optional[Variant] = None


def journey_stats(nodes: Sequence[JourneyNode]) -> JourneyStats:
    """
    Count outcomes over a journey.

    completion_rate follows round(100 * successes / (successes + failures));
    success_rate is successes over every node, which is what the motivation
    progress factor consumes.
    """

    successes = sum(1 for n in nodes if n.status == NodeStatus.SUCCESS)
    failures = sum(1 for n in nodes if n.status == NodeStatus.FAILURE)
    remediations = sum(1 for n in nodes if n.type == NodeType.REMEDIATION)
    graded = successes + failures

    variant_counts = {variant: 0 for variant in Variant}
    starting_variant: Optional[Variant] = None
    for node in nodes:
        if node.variant_used is None:
            continue
        variant_counts[node.variant_used] += 1
        if starting_variant is None and node.type == NodeType.QUESTION:
            starting_variant = node.variant_used

    return JourneyStats(
        success_count=successes,
        failure_count=failures,
        remediation_count=remediations,
        total=len(nodes),
        completion_rate=percentage(successes, graded) if graded else None,
        success_rate=successes / len(nodes) if nodes else 0.0,
        variant_counts=variant_counts,
        starting_variant=starting_variant,
    )


def journey_success_rate(nodes: Sequence[JourneyNode]) -> float:
    return journey_stats(nodes).success_rate


def validate_journey(nodes: Sequence[JourneyNode]) -> List[str]:
    """Return human-readable invariant violations; an empty list means the journey is sound."""

    violations: List[str] = []
    seen_failure = False
    previous: Optional[JourneyNode] = None
    for idx, node in enumerate(nodes):
        if previous is not None and node.timestamp <= previous.timestamp:
            violations.append(
                f"node {idx} ({node.node_id}) at {node.timestamp} does not follow {previous.node_id} at {previous.timestamp}"
            )
        if node.type == NodeType.REMEDIATION:
            branched = node.connection == Connection.BRANCHED
            if branched and not seen_failure:
                violations.append(f"node {idx} ({node.node_id}) is a branched remediation without a prior failure")
            if not branched and seen_failure:
                violations.append(f"node {idx} ({node.node_id}) is a remediation after a failure but not branched")
        if node.status == NodeStatus.FAILURE:
            seen_failure = True
        previous = node
    return violations


def ensure_valid_journey(nodes: Sequence[JourneyNode]) -> Sequence[JourneyNode]:
    violations = validate_journey(nodes)
    if violations:
        raise JourneyError(violations)
    return nodes


def sort_journey(nodes: Iterable[JourneyNode]) -> List[JourneyNode]:
    # Stable sort keeps insertion order for nodes that share a timestamp.
    return sorted(nodes, key=lambda n: n.timestamp)


def enrich_journey(
    nodes: Sequence[JourneyNode],
    adaptive_events: Iterable[Mapping],
) -> List[JourneyNode]:
    """
    Apply adaptive-engine events to journey nodes keyed by block id.

    Recognized event types: variant_selected, scaffolding_offered,
    scaffolding_accepted (may carry the scaffolding variant), scaffolding_declined.
    Events are applied in the order given; later events win.
    """

    variant_map: Dict[str, Variant] = {}
    scaffolding: Dict[str, Dict[str, bool]] = {}

    for event in adaptive_events:
        block_id = event.get("blockId") or event.get("block_id")
        if not block_id:
            continue
        data = event.get("data") or {}
        event_type = event.get("type")
        if event_type == "variant_selected":
            variant = parse_variant(data.get("variantType"))
            if variant is not None:
                variant_map[block_id] = variant
        elif event_type == "scaffolding_offered":
            scaffolding[block_id] = {"offered": True}
        elif event_type == "scaffolding_accepted":
            scaffolding[block_id] = {"offered": True, "accepted": True, "declined": False}
            variant = parse_variant(data.get("scaffoldingVariantType"))
            if variant is not None:
                variant_map[block_id] = variant
        elif event_type == "scaffolding_declined":
            scaffolding[block_id] = {"offered": True, "accepted": False, "declined": True}

    if not variant_map and not scaffolding:
        return list(nodes)

    enriched: List[JourneyNode] = []
    for node in nodes:
        if not node.block_id:
            enriched.append(node)
            continue
        offer = scaffolding.get(node.block_id, {})
        metadata = dict(node.metadata)
        metadata["scaffolding_offered"] = offer.get("offered", False)
        if "accepted" in offer:
            metadata["scaffolding_accepted"] = offer["accepted"]
            metadata["scaffolding_declined"] = offer["declined"]
        enriched.append(
            replace(
                node,
                variant_used=variant_map.get(node.block_id, node.variant_used),
                metadata=metadata,
            )
        )
    return enriched
