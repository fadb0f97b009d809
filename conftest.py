from datetime import datetime

import pytest

from transit_graph.common.database import get_db_engine
from transit_graph.common.models import Dataset, Stop
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.graphs import GraphRepository
from transit_graph.repositories.leases import LeaseRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository

CITY_DIRECTORY = {
    'Alpha': {'latitude': 62.0, 'longitude': 129.7},
    'Beta': {'latitude': 62.5, 'longitude': 114.0},
    'Gamma': {'latitude': 56.7, 'longitude': 124.7},
}


class FakeCache:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value):
        self.store[key] = value
        return True

    def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def engine(tmp_path):
    engine = get_db_engine(f"sqlite:///{tmp_path / 'transit.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def repos(engine, cache):
    return {
        'stops': StopRepository(engine),
        'routes': RouteRepository(engine),
        'flights': FlightRepository(engine),
        'datasets': DatasetRepository(engine),
        'graphs': GraphRepository(engine, cache),
        'leases': LeaseRepository(engine, ttl_seconds=3600),
    }


@pytest.fixture
def dataset(repos):
    return repos['datasets'].create_dataset(Dataset(version='dataset-test', created_at=datetime(2024, 1, 1)))


@pytest.fixture
def alpha_stop(repos):
    stop = Stop(id='alpha-airport', name='Alpha Airport', latitude=62.09, longitude=129.77,
                city_id='Alpha', is_airport=True)
    repos['stops'].save_real_stops_batch([stop])
    return stop
