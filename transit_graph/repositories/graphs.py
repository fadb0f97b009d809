import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update

from transit_graph.common.models import GraphMetadata
from transit_graph.common.schema import graphs
from transit_graph.repositories.base import TableRepository

GRAPH_VERSION_KEY = "graph:version"


def graph_cache_key(version: str) -> str:
    return f"graph:{version}"


class GraphRepository(TableRepository):
    """Graph metadata in the relational store, adjacency artifacts in the cache."""

    model = GraphMetadata

    def __init__(self, engine, cache):
        super().__init__(engine)
        self.cache = cache

    # cache side

    def save_graph(self, version: str, node_ids: List[str], neighbors: Dict[str, list], summary: dict) -> str:
        key = graph_cache_key(version)
        payload = {'version': version, 'nodes': node_ids, 'neighbors': neighbors, 'summary': summary}
        self.cache.set(key, json.dumps(payload, ensure_ascii=False))
        logging.info(f"Stored graph {version} under cache key {key}")
        return key

    def get_graph(self, version: str) -> Optional[dict]:
        raw = self.cache.get(graph_cache_key(version))
        return json.loads(raw) if raw else None

    def get_neighbors(self, stop_id: str, version: Optional[str] = None) -> list:
        version = version or self.get_graph_version()
        if not version:
            return []
        graph = self.get_graph(version)
        if not graph:
            return []
        return graph['neighbors'].get(stop_id, [])

    def set_graph_version(self, version: str) -> None:
        self.cache.set(GRAPH_VERSION_KEY, version)

    def get_graph_version(self) -> Optional[str]:
        return self.cache.get(GRAPH_VERSION_KEY) or None

    # relational side

    def get_graph_metadata_by_dataset_version(self, dataset_version: str) -> List[GraphMetadata]:
        return self._read(graphs, graphs.c.dataset_version == dataset_version)

    def get_graph_metadata(self, version: str) -> Optional[GraphMetadata]:
        found = self._read(graphs, graphs.c.version == version)
        return found[0] if found else None

    def get_active_graph_metadata(self) -> Optional[GraphMetadata]:
        found = self._read(graphs, graphs.c.is_active.is_(True))
        return found[0] if found else None

    def count_active_graphs(self) -> int:
        return self._count(graphs, graphs.c.is_active.is_(True))

    def save_graph_metadata(self, record: GraphMetadata) -> GraphMetadata:
        values = record.model_dump(exclude={'id'})
        if values.get('created_at') is None:
            values['created_at'] = datetime.now()
        with self.engine.begin() as conn:
            result = conn.execute(graphs.insert().values(**values))
            new_id = result.inserted_primary_key[0]
        return record.model_copy(update={'id': new_id, 'created_at': values['created_at']})

    def set_active_graph_metadata(self, version: str) -> None:
        """Make ``version`` the only active record, in a single transaction."""
        with self.engine.begin() as conn:
            exists = conn.execute(
                select(graphs.c.id).where(graphs.c.version == version)
            ).first()
            if exists is None:
                raise ValueError(f"Graph metadata for {version} not found")
            conn.execute(update(graphs).where(graphs.c.version != version).values(is_active=False))
            conn.execute(update(graphs).where(graphs.c.version == version).values(is_active=True))
