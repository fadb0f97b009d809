import time
from typing import Dict, Optional

from transit_graph.common.config import DEFAULT_HUB_CITY
from transit_graph.common.models import DatasetStatistics, Stop
from transit_graph.processing.virtual_entities import (
    find_missing_cities,
    generate_hub_routes,
    generate_mesh_routes,
    generate_virtual_flights,
    generate_virtual_stops,
)
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.leases import LeaseRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository
from transit_graph.workers.base import BackgroundWorker, DataProcessed, WorkerExecutionResult

WORKER_ID = 'virtual-entities-generator'
NEXT_WORKER = 'graph-builder'


class VirtualEntitiesGeneratorWorker(BackgroundWorker):
    """Creates virtual stops, routes and flights for cities with no real stop.

    Runs once per store: as soon as any virtual stop exists the worker skips,
    there is no incremental merge.
    """

    def __init__(self, stop_repository: StopRepository, route_repository: RouteRepository,
                 flight_repository: FlightRepository, dataset_repository: DatasetRepository,
                 city_directory: Dict[str, dict], hub_city: str = DEFAULT_HUB_CITY,
                 horizon_days: int = 365, mesh_cap: int = 50, mesh_neighbours: int = 3,
                 lease_repository: Optional[LeaseRepository] = None, silent: bool = False):
        super().__init__(WORKER_ID, 'Virtual Entities Generator Worker', '1.0.0', lease_repository)
        self.stop_repository = stop_repository
        self.route_repository = route_repository
        self.flight_repository = flight_repository
        self.dataset_repository = dataset_repository
        self.city_directory = city_directory
        self.hub_city = hub_city
        self.horizon_days = horizon_days
        self.mesh_cap = mesh_cap
        self.mesh_neighbours = mesh_neighbours
        self.silent = silent

    def can_run(self) -> bool:
        if not super().can_run():
            return False

        if self.dataset_repository.get_latest_dataset() is None:
            self.log('INFO', 'No dataset found - cannot run')
            return False

        virtual_stops_count = self.stop_repository.count_virtual_stops()
        if virtual_stops_count > 0:
            self.log('INFO', f'Virtual entities already exist ({virtual_stops_count} stops) - skipping')
            return False

        return True

    def find_hub_stop(self) -> Optional[Stop]:
        real = self.stop_repository.get_real_stops_by_city(self.hub_city)
        if real:
            return real[0]
        virtual = self.stop_repository.get_virtual_stops_by_city(self.hub_city)
        if virtual:
            return virtual[0]
        return None

    def execute_worker_logic(self) -> WorkerExecutionResult:
        started = time.monotonic()

        self.log('INFO', 'Step 1: Loading latest dataset...')
        dataset = self.dataset_repository.get_latest_dataset()
        if dataset is None:
            return WorkerExecutionResult(
                success=False,
                worker_id=self.worker_id,
                execution_time_ms=int((time.monotonic() - started) * 1000),
                message='No dataset found',
                error='NO_DATASET',
            )
        self.log('INFO', f'Dataset: {dataset.version} ({dataset.total_stops} stops)')

        self.log('INFO', 'Step 2: Finding cities without real stops...')
        real_stops = self.stop_repository.get_all_real_stops()
        missing = find_missing_cities(self.city_directory, real_stops)
        preview = ', '.join(missing[:5]) + ('...' if len(missing) > 5 else '')
        self.log('INFO', f'Found {len(missing)} cities without real stops: {preview}')

        self.log('INFO', 'Step 3: Generating virtual stops...')
        virtual_stops = generate_virtual_stops(missing, self.city_directory)
        if virtual_stops:
            self.stop_repository.save_virtual_stops_batch(virtual_stops)
        self.log('INFO', f'Generated {len(virtual_stops)} virtual stops')

        self.log('INFO', 'Step 4: Generating virtual routes...')
        hub = self.find_hub_stop()
        if hub is not None:
            self.log('INFO', f'Using hub: {hub.name} ({hub.id})')
            virtual_routes = generate_hub_routes(virtual_stops, hub)
        else:
            self.log('WARNING', f'Hub city "{self.hub_city}" not found - generating direct connections')
            virtual_routes = generate_mesh_routes(virtual_stops, self.mesh_cap, self.mesh_neighbours)
        if virtual_routes:
            self.route_repository.save_virtual_routes_batch(virtual_routes)
        self.log('INFO', f'Generated {len(virtual_routes)} virtual routes')

        self.log('INFO', 'Step 5: Generating virtual flights...')
        virtual_flights = generate_virtual_flights(virtual_routes, self.horizon_days, silent=self.silent)
        if virtual_flights:
            self.flight_repository.save_flights_batch(virtual_flights)
        self.log('INFO', f'Generated {len(virtual_flights)} virtual flights')

        self.log('INFO', 'Step 6: Updating dataset statistics...')
        total_virtual_stops = self.stop_repository.count_virtual_stops()
        total_virtual_routes = self.route_repository.count_virtual_routes()
        statistics = DatasetStatistics(
            total_stops=self.stop_repository.count_real_stops() + total_virtual_stops,
            total_routes=self.route_repository.count_routes() + total_virtual_routes,
            total_flights=self.flight_repository.count_flights(),
            total_virtual_stops=total_virtual_stops,
            total_virtual_routes=total_virtual_routes,
        )
        self.dataset_repository.update_statistics(dataset.version, statistics)
        self.log('INFO', f'Updated statistics: {statistics.total_stops} stops, '
                         f'{statistics.total_routes} routes, {statistics.total_flights} flights')

        added = len(virtual_stops) + len(virtual_routes) + len(virtual_flights)
        return WorkerExecutionResult(
            success=True,
            worker_id=self.worker_id,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            message=(f'Virtual entities generated: {len(virtual_stops)} stops, '
                     f'{len(virtual_routes)} routes, {len(virtual_flights)} flights'),
            data_processed=DataProcessed(added=added),
            next_worker=NEXT_WORKER,
        )
