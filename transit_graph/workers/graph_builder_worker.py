import time
from datetime import datetime
from typing import Callable, Optional

from transit_graph.common.models import GraphMetadata
from transit_graph.export.graph_export import backup_path_for, build_neighbors_map, write_graph_backup
from transit_graph.processing.graph_structure import build_graph_structure
from transit_graph.processing.stop_types import StopTypeClassifier
from transit_graph.processing.validation import (
    validate_ferry_edges,
    validate_graph_structure,
    validate_transfer_edges,
)
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.graphs import GraphRepository
from transit_graph.repositories.leases import LeaseRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository
from transit_graph.workers.base import BackgroundWorker, DataProcessed, WorkerExecutionResult

WORKER_ID = 'graph-builder'


class GraphBuilderWorker(BackgroundWorker):
    """Compiles stops, routes and flights into a published, versioned graph.

    Nothing becomes visible to readers until the final activation step; a
    failure anywhere before it leaves the previously active graph in place.
    """

    def __init__(self, stop_repository: StopRepository, route_repository: RouteRepository,
                 flight_repository: FlightRepository, dataset_repository: DatasetRepository,
                 graph_repository: GraphRepository, classifier: Optional[StopTypeClassifier] = None,
                 backup_dir: Optional[str] = None, clock: Callable[[], datetime] = datetime.now,
                 lease_repository: Optional[LeaseRepository] = None, silent: bool = False):
        super().__init__(WORKER_ID, 'Graph Builder Worker', '1.0.0', lease_repository)
        self.stop_repository = stop_repository
        self.route_repository = route_repository
        self.flight_repository = flight_repository
        self.dataset_repository = dataset_repository
        self.graph_repository = graph_repository
        self.classifier = classifier
        self.backup_dir = backup_dir
        self.clock = clock
        self.silent = silent

    def can_run(self) -> bool:
        if not super().can_run():
            return False

        dataset = self.dataset_repository.get_latest_dataset()
        if dataset is None:
            self.log('INFO', 'No dataset found - cannot build graph')
            return False

        if self.graph_repository.get_graph_metadata_by_dataset_version(dataset.version):
            self.log('INFO', f'Graph already exists for dataset {dataset.version} - skipping')
            return False

        return True

    def next_graph_version(self, built_at: datetime) -> str:
        stamp = int(built_at.timestamp() * 1000)
        while self.graph_repository.get_graph_metadata(f"graph-v{stamp}") is not None:
            stamp += 1
        return f"graph-v{stamp}"

    def execute_worker_logic(self) -> WorkerExecutionResult:
        started = time.monotonic()
        built_at = self.clock()

        self.log('INFO', 'Step 1: Loading stops...')
        real_stops = self.stop_repository.get_all_real_stops()
        virtual_stops = self.stop_repository.get_all_virtual_stops()
        stops = real_stops + virtual_stops
        self.log('INFO', f'Loaded {len(stops)} stops ({len(real_stops)} real, {len(virtual_stops)} virtual)')

        self.log('INFO', 'Step 2: Loading routes...')
        real_routes = self.route_repository.get_all_routes()
        virtual_routes = self.route_repository.get_all_virtual_routes()
        routes = real_routes + virtual_routes
        self.log('INFO', f'Loaded {len(routes)} routes ({len(real_routes)} real, {len(virtual_routes)} virtual)')

        self.log('INFO', 'Step 3: Loading flights...')
        flights = self.flight_repository.get_all_flights()
        self.log('INFO', f'Loaded {len(flights)} flights')

        self.log('INFO', 'Step 4: Building graph structure...')
        nodes, edges = build_graph_structure(
            stops, routes, flights, classifier=self.classifier, today=built_at.date(), silent=self.silent
        )
        self.log('INFO', f'Built graph: {len(nodes)} nodes, {len(edges)} edges')

        checks = (
            ('Step 4.1', 'Graph structure', validate_graph_structure(nodes, edges)),
            ('Step 4.2', 'Transfer edges', validate_transfer_edges(edges, nodes)),
            ('Step 4.3', 'Ferry edges', validate_ferry_edges(edges, nodes)),
        )
        for step, stage, result in checks:
            self.log('INFO', f'{step}: Validating {stage.lower()}...')
            if not result.is_valid:
                self.log('ERROR', f"{stage} validation failed: {'; '.join(result.errors[:20])}")
            result.raise_for_errors(stage)
            result.log_warnings(stage)
            self.log('INFO', f'{stage} validation passed. Stats: {result.stats}')

        dataset = self.dataset_repository.get_latest_dataset()
        if dataset is None:
            raise RuntimeError('Dataset disappeared during graph building')

        self.log('INFO', 'Step 5: Saving graph to cache...')
        version = self.next_graph_version(built_at)
        node_ids = [node.id for node in nodes]
        neighbors = build_neighbors_map(edges)
        summary = {
            'version': version,
            'nodes': len(nodes),
            'edges': len(edges),
            'buildTimestamp': int(built_at.timestamp() * 1000),
            'datasetVersion': dataset.version,
        }
        cache_key = self.graph_repository.save_graph(version, node_ids, neighbors, summary)
        self.log('INFO', f'Saved graph to cache: {version}')

        backup_path = backup_path_for(version)
        if self.backup_dir:
            self.log('INFO', 'Step 6: Writing graph backup...')
            backup_path = write_graph_backup(self.backup_dir, version, node_ids, neighbors, summary)

        self.log('INFO', 'Step 7: Creating graph metadata...')
        build_duration_ms = int((time.monotonic() - started) * 1000)
        record = self.graph_repository.save_graph_metadata(GraphMetadata(
            version=version,
            dataset_version=dataset.version,
            total_nodes=len(nodes),
            total_edges=len(edges),
            build_duration_ms=build_duration_ms,
            cache_key=cache_key,
            backup_path=backup_path,
            metadata={'buildDurationMs': build_duration_ms},
            is_active=False,
        ))
        self.log('INFO', f'Created graph metadata: {record.id}')

        self.log('INFO', 'Step 8: Activating new graph version...')
        self.graph_repository.set_active_graph_metadata(version)
        self.graph_repository.set_graph_version(version)
        self.log('INFO', f'Activated graph version: {version}')

        return WorkerExecutionResult(
            success=True,
            worker_id=self.worker_id,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            message=f'Graph built successfully: {len(nodes)} nodes, {len(edges)} edges',
            data_processed=DataProcessed(added=len(nodes) + len(edges)),
        )
