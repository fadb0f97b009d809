import json
import logging
import os
from typing import Dict, List, Sequence

from transit_graph.processing.graph_structure import GraphEdge


def build_neighbors_map(edges: Sequence[GraphEdge]) -> Dict[str, List[dict]]:
    """Adjacency list keyed by origin stop, in edge precedence order."""
    neighbors: Dict[str, List[dict]] = {}
    for edge in edges:
        neighbors.setdefault(edge.from_stop_id, []).append({
            'neighborId': edge.to_stop_id,
            'weight': edge.weight,
            'metadata': {
                'distance': edge.distance,
                'transportType': edge.transport_type,
                'routeId': edge.route_id,
            },
        })
    return neighbors


def backup_path_for(version: str) -> str:
    return os.path.join("graph", f"export-{version}.json")


def write_graph_backup(output_dir: str, version: str, node_ids: List[str],
                       neighbors: Dict[str, List[dict]], summary: dict) -> str:
    relative_path = backup_path_for(version)
    path = os.path.join(output_dir, relative_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump({'version': version, 'nodes': node_ids, 'neighbors': neighbors, 'summary': summary},
                  f, ensure_ascii=False)
    logging.info(f"Wrote graph backup to {path}")
    return path
