import logging
from typing import Dict, List, Optional

from transit_graph.common.config import PipelineConfig
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.graphs import GraphRepository
from transit_graph.repositories.leases import LeaseRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository
from transit_graph.workers.base import BackgroundWorker, WorkerExecutionResult
from transit_graph.workers.graph_builder_worker import GraphBuilderWorker
from transit_graph.workers.virtual_entities_worker import VirtualEntitiesGeneratorWorker


class WorkerOrchestrator:
    def __init__(self):
        self.workers: Dict[str, BackgroundWorker] = {}

    def register(self, worker: BackgroundWorker) -> None:
        self.workers[worker.worker_id] = worker

    def get(self, worker_id: str) -> BackgroundWorker:
        if worker_id not in self.workers:
            raise KeyError(f"Unknown worker: {worker_id}")
        return self.workers[worker_id]

    def run(self, worker_id: str, follow_chain: bool = True) -> List[WorkerExecutionResult]:
        """Run a worker and, unless told otherwise, the workers it hands off to."""
        results = []
        next_id: Optional[str] = worker_id
        while next_id:
            result = self.get(next_id).execute()
            results.append(result)
            if result.skipped or not result.success or not follow_chain:
                break
            next_id = result.next_worker
            if next_id:
                logging.info(f"{result.worker_id} handed off to {next_id}")
        return results


def create_orchestrator(engine, cache, config: PipelineConfig, city_directory: dict,
                        silent: bool = False) -> WorkerOrchestrator:
    stop_repository = StopRepository(engine)
    route_repository = RouteRepository(engine)
    flight_repository = FlightRepository(engine)
    dataset_repository = DatasetRepository(engine)
    graph_repository = GraphRepository(engine, cache)
    lease_repository = LeaseRepository(engine, ttl_seconds=config.lease_ttl_seconds)

    orchestrator = WorkerOrchestrator()
    orchestrator.register(VirtualEntitiesGeneratorWorker(
        stop_repository, route_repository, flight_repository, dataset_repository,
        city_directory=city_directory,
        hub_city=config.hub_city,
        horizon_days=config.horizon_days,
        mesh_cap=config.mesh_cap,
        mesh_neighbours=config.mesh_neighbours,
        lease_repository=lease_repository,
        silent=silent,
    ))
    orchestrator.register(GraphBuilderWorker(
        stop_repository, route_repository, flight_repository, dataset_repository, graph_repository,
        backup_dir=config.backup_dir,
        lease_repository=lease_repository,
        silent=silent,
    ))
    return orchestrator
