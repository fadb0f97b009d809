import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from transit_graph.common.models import TransportType
from transit_graph.processing.graph_structure import GraphEdge, GraphNode
from transit_graph.processing.stop_types import DEFAULT_TRANSFER_WEIGHT, TRANSFER_WEIGHTS

MAX_FERRY_WEIGHT = 24 * 60
ALLOWED_TRANSFER_WEIGHTS = set(TRANSFER_WEIGHTS.values()) | {DEFAULT_TRANSFER_WEIGHT}


class GraphValidationError(ValueError):
    def __init__(self, stage: str, errors: List[str]):
        self.stage = stage
        self.errors = errors
        super().__init__(f"{stage} validation failed: {'; '.join(errors)}")


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def raise_for_errors(self, stage: str) -> None:
        if not self.is_valid:
            raise GraphValidationError(stage, self.errors)

    def log_warnings(self, stage: str) -> None:
        for warning in self.warnings:
            logging.warning(f"{stage} validation: {warning}")


def _finish(errors, warnings, stats=None) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings, stats=stats or {})


def validate_graph_structure(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not nodes:
        errors.append("Graph has no nodes")
    if not edges:
        errors.append("Graph has no edges")

    node_counts = Counter(node.id for node in nodes)
    duplicates = sorted(node_id for node_id, count in node_counts.items() if count > 1)
    if duplicates:
        errors.append(f"Duplicate node ids: {', '.join(duplicates[:10])}")

    node_ids = set(node_counts)
    touched = set()
    for edge in edges:
        label = f"{edge.from_stop_id} -> {edge.to_stop_id}"
        if not isinstance(edge.weight, (int, float)) or not math.isfinite(edge.weight) or edge.weight <= 0:
            errors.append(f"Edge {label} has invalid weight {edge.weight!r}")
        if edge.from_stop_id not in node_ids:
            errors.append(f"Edge {label} starts at unknown node {edge.from_stop_id}")
        if edge.to_stop_id not in node_ids:
            errors.append(f"Edge {label} ends at unknown node {edge.to_stop_id}")
        touched.add(edge.from_stop_id)
        touched.add(edge.to_stop_id)

    isolated = len(node_ids - touched)
    if isolated:
        warnings.append(f"{isolated} nodes have no edges")

    stats = {
        'nodes': len(nodes),
        'edges': len(edges),
        'isolatedNodes': isolated,
        'averageOutDegree': round(len(edges) / len(node_ids), 2) if node_ids else 0,
    }
    return _finish(errors, warnings, stats)


def validate_transfer_edges(edges: Sequence[GraphEdge], nodes: Sequence[GraphNode]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    city_of = {node.id: node.city_id for node in nodes}

    transfers = [e for e in edges if e.transport_type == TransportType.transfer.value]
    pairs = {(e.from_stop_id, e.to_stop_id) for e in transfers}
    for edge in transfers:
        label = f"{edge.from_stop_id} -> {edge.to_stop_id}"
        from_city = city_of.get(edge.from_stop_id)
        to_city = city_of.get(edge.to_stop_id)
        if not from_city or from_city != to_city:
            errors.append(f"Transfer {label} joins stops of different cities ({from_city} / {to_city})")
        if edge.weight not in ALLOWED_TRANSFER_WEIGHTS:
            errors.append(f"Transfer {label} has unexpected weight {edge.weight}")
        if (edge.to_stop_id, edge.from_stop_id) not in pairs:
            warnings.append(f"Transfer {label} has no reverse edge")

    return _finish(errors, warnings, {'transferEdges': len(transfers)})


def validate_ferry_edges(edges: Sequence[GraphEdge], nodes: Sequence[GraphNode]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    node_ids = {node.id for node in nodes}

    ferries = [e for e in edges if e.transport_type == TransportType.ferry.value]
    long_crossings = 0
    for edge in ferries:
        label = f"{edge.from_stop_id} -> {edge.to_stop_id}"
        if edge.from_stop_id not in node_ids or edge.to_stop_id not in node_ids:
            errors.append(f"Ferry edge {label} references an unknown pier")
        # multi-day river crossings are legitimate
        if edge.weight > MAX_FERRY_WEIGHT:
            long_crossings += 1
            warnings.append(f"Ferry edge {label} weight {edge.weight} exceeds {MAX_FERRY_WEIGHT} minutes")
        if not edge.route_id:
            warnings.append(f"Ferry edge {label} has no route id")

    return _finish(errors, warnings, {'ferryEdges': len(ferries), 'longCrossings': long_crossings})
