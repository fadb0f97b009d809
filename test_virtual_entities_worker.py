from datetime import datetime

import pytest

from transit_graph.common.models import Dataset, Stop
from transit_graph.workers.virtual_entities_worker import VirtualEntitiesGeneratorWorker

from conftest import CITY_DIRECTORY


def _worker(repos, hub_city='Alpha', directory=CITY_DIRECTORY, **kwargs):
    return VirtualEntitiesGeneratorWorker(
        repos['stops'], repos['routes'], repos['flights'], repos['datasets'],
        city_directory=directory,
        hub_city=hub_city,
        lease_repository=repos['leases'],
        silent=True,
        **kwargs,
    )


def test_skips_without_dataset(repos):
    result = _worker(repos).execute()
    assert result.skipped
    assert repos['stops'].count_virtual_stops() == 0


def test_scenario_with_real_hub(repos, dataset, alpha_stop):
    result = _worker(repos).execute()

    assert result.success and not result.skipped
    assert result.next_worker == 'graph-builder'
    stops = repos['stops'].get_all_virtual_stops()
    assert sorted(s.city_id for s in stops) == ['Beta', 'Gamma']
    assert repos['routes'].count_virtual_routes() == 4
    assert repos['flights'].count_virtual_flights() == 2920
    assert result.data_processed.added == 2 + 4 + 2920

    for route in repos['routes'].get_all_virtual_routes():
        assert alpha_stop.id in (route.from_stop_id, route.to_stop_id)
        assert route.duration_minutes >= 60

    stats = repos['datasets'].get_dataset(dataset.version)
    assert stats.total_virtual_stops == 2
    assert stats.total_virtual_routes == 4
    assert stats.total_stops == 3
    assert stats.total_flights == 2920


def test_second_run_is_a_no_op(repos, dataset, alpha_stop):
    _worker(repos, horizon_days=2).execute()
    second = _worker(repos, horizon_days=2).execute()

    assert second.skipped
    assert repos['stops'].count_virtual_stops() == 2
    assert repos['routes'].count_virtual_routes() == 4


def test_one_virtual_stop_per_missing_city(repos, dataset):
    repos['stops'].save_real_stops_batch([Stop(id='beta-bus', name='Beta bus station', city_id='beta')])

    _worker(repos, horizon_days=1).execute()

    stops = repos['stops'].get_all_virtual_stops()
    assert sorted(s.city_id for s in stops) == ['Alpha', 'Gamma']


def test_virtual_hub_when_hub_city_has_no_real_stop(repos, dataset):
    repos['stops'].save_real_stops_batch([Stop(id='gamma-bus', name='Gamma bus', city_id='Gamma')])

    _worker(repos, hub_city='Alpha', horizon_days=1).execute()

    routes = repos['routes'].get_all_virtual_routes()
    # Alpha and Beta are virtual; Alpha is the hub, so only Beta gets routes
    assert len(routes) == 2
    assert all(r.route_type == 'VIRTUAL_TO_VIRTUAL' for r in routes)
    assert all(r.from_stop_id != r.to_stop_id for r in routes)


def test_mesh_without_hub(repos):
    repos['datasets'].create_dataset(Dataset(version='d1', created_at=datetime(2024, 1, 1)))
    directory = dict(CITY_DIRECTORY, Delta={'latitude': 60.7, 'longitude': 114.9})

    result = _worker(repos, hub_city='Nowhere', directory=directory, horizon_days=1).execute()

    assert result.success
    assert repos['stops'].count_virtual_stops() == 4
    assert repos['routes'].count_virtual_routes() == 2 * 6
    assert repos['flights'].count_virtual_flights() == 2 * 6 * 2


def test_lease_held_elsewhere_skips(repos, dataset, alpha_stop):
    assert repos['leases'].acquire('virtual-entities-generator')

    result = _worker(repos).execute()

    assert result.skipped
    assert repos['stops'].count_virtual_stops() == 0


def test_lease_released_after_failure(repos, dataset, alpha_stop, monkeypatch):
    worker = _worker(repos, horizon_days=1)

    def broken(*args, **kwargs):
        raise RuntimeError('store unavailable')

    monkeypatch.setattr(repos['routes'], 'save_virtual_routes_batch', broken)
    with pytest.raises(RuntimeError):
        worker.execute()

    assert not worker.is_running
    assert repos['leases'].acquire('virtual-entities-generator')
