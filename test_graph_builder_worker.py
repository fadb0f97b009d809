import json
import os
from datetime import datetime

import pytest

from transit_graph.common.models import Dataset, Flight, Route, Stop
from transit_graph.processing.validation import GraphValidationError
from transit_graph.repositories.graphs import GRAPH_VERSION_KEY
from transit_graph.workers.graph_builder_worker import GraphBuilderWorker
from transit_graph.workers.virtual_entities_worker import VirtualEntitiesGeneratorWorker

from conftest import CITY_DIRECTORY


def _builder(repos, **kwargs):
    kwargs.setdefault('clock', lambda: datetime(2024, 12, 15, 10, 0))
    return GraphBuilderWorker(
        repos['stops'], repos['routes'], repos['flights'], repos['datasets'], repos['graphs'],
        lease_repository=repos['leases'],
        silent=True,
        **kwargs,
    )


def _seed_small_network(repos):
    repos['stops'].save_real_stops_batch([
        Stop(id='yak-airport', name='Yakutsk Airport', latitude=62.09, longitude=129.77, city_id='Yakutsk',
             is_airport=True),
        Stop(id='yak-bus', name='Yakutsk Bus', latitude=62.03, longitude=129.73, city_id='Yakutsk'),
        Stop(id='mirny-airport', name='Mirny Airport', latitude=62.53, longitude=114.03, city_id='Mirny',
             is_airport=True),
    ])
    repos['routes'].save_routes_batch([
        Route(id='r-air', from_stop_id='yak-airport', to_stop_id='mirny-airport', transport_type='AIRPLANE',
              duration_minutes=60, distance_km=820),
    ])
    repos['flights'].save_flights_batch([
        Flight(id='f1', route_id='r-air', from_stop_id='yak-airport', to_stop_id='mirny-airport',
               departure_time='08:00', arrival_time='10:15'),
    ])


def test_skips_without_dataset(repos):
    assert _builder(repos).execute().skipped


def test_builds_and_activates_graph(repos, dataset, cache):
    _seed_small_network(repos)

    result = _builder(repos).execute()

    assert result.success and not result.skipped
    active = repos['graphs'].get_active_graph_metadata()
    assert active is not None
    assert active.dataset_version == dataset.version
    assert active.version.startswith('graph-v')
    assert active.cache_key == f'graph:{active.version}'
    assert active.total_nodes == 3
    # one flight edge plus two transfers inside Yakutsk
    assert active.total_edges == 3
    assert result.data_processed.added == 6

    assert cache.store[GRAPH_VERSION_KEY] == active.version
    graph = json.loads(cache.store[active.cache_key])
    assert sorted(graph['nodes']) == ['mirny-airport', 'yak-airport', 'yak-bus']
    assert graph['summary']['datasetVersion'] == dataset.version
    assert graph['summary']['edges'] == 3

    neighbors = repos['graphs'].get_neighbors('yak-airport')
    assert neighbors[0] == {
        'neighborId': 'mirny-airport',
        'weight': 135,
        'metadata': {'distance': 820, 'transportType': 'AIRPLANE', 'routeId': 'r-air'},
    }
    transfer = [n for n in neighbors if n['metadata']['transportType'] == 'TRANSFER']
    assert transfer == [{'neighborId': 'yak-bus', 'weight': 90,
                         'metadata': {'distance': None, 'transportType': 'TRANSFER', 'routeId': None}}]


def test_skips_when_graph_exists_for_dataset(repos, dataset):
    _seed_small_network(repos)
    assert not _builder(repos).execute().skipped
    assert _builder(repos).execute().skipped
    assert len(repos['graphs'].get_graph_metadata_by_dataset_version(dataset.version)) == 1


def test_single_active_version_across_datasets(repos, cache):
    _seed_small_network(repos)
    versions = []
    for month in (1, 2, 3):
        repos['datasets'].create_dataset(Dataset(version=f'dataset-{month}', created_at=datetime(2024, month, 1)))
        result = _builder(repos).execute()
        assert result.success and not result.skipped
        versions.append(repos['graphs'].get_graph_version())

    assert len(set(versions)) == 3
    assert repos['graphs'].count_active_graphs() == 1
    assert repos['graphs'].get_active_graph_metadata().version == versions[-1]
    assert cache.store[GRAPH_VERSION_KEY] == versions[-1]


def test_validation_failure_activates_nothing(repos, dataset, cache):
    _seed_small_network(repos)
    repos['flights'].save_flights_batch([
        Flight(id='f-ghost', route_id='r-ghost', from_stop_id='yak-airport', to_stop_id='ghost-stop',
               departure_time='08:00', arrival_time='09:00'),
    ])

    with pytest.raises(GraphValidationError):
        _builder(repos).execute()

    assert repos['graphs'].get_active_graph_metadata() is None
    assert repos['graphs'].get_graph_metadata_by_dataset_version(dataset.version) == []
    assert GRAPH_VERSION_KEY not in cache.store
    assert repos['leases'].acquire('graph-builder')


def test_failed_build_keeps_previous_version(repos, cache):
    _seed_small_network(repos)
    repos['datasets'].create_dataset(Dataset(version='dataset-1', created_at=datetime(2024, 1, 1)))
    _builder(repos).execute()
    previous = repos['graphs'].get_graph_version()

    repos['datasets'].create_dataset(Dataset(version='dataset-2', created_at=datetime(2024, 2, 1)))
    repos['flights'].save_flights_batch([Flight(id='f-ghost', from_stop_id='ghost', to_stop_id='yak-bus')])
    with pytest.raises(GraphValidationError):
        _builder(repos).execute()

    assert repos['graphs'].get_graph_version() == previous
    assert repos['graphs'].get_active_graph_metadata().version == previous


def test_version_and_timestamp_follow_the_clock(repos, cache):
    _seed_small_network(repos)
    built_at = datetime(2024, 12, 15, 10, 0)
    stamp = int(built_at.timestamp() * 1000)

    repos['datasets'].create_dataset(Dataset(version='dataset-1', created_at=datetime(2024, 1, 1)))
    _builder(repos, clock=lambda: built_at).execute()
    first = repos['graphs'].get_graph_version()

    repos['datasets'].create_dataset(Dataset(version='dataset-2', created_at=datetime(2024, 2, 1)))
    _builder(repos, clock=lambda: built_at).execute()
    second = repos['graphs'].get_graph_version()

    assert first == f'graph-v{stamp}'
    assert second == f'graph-v{stamp + 1}'
    assert repos['graphs'].get_graph(first)['summary']['buildTimestamp'] == stamp


def test_multi_day_ferry_is_published(repos, dataset):
    repos['stops'].save_real_stops_batch([
        Stop(id='yak-pier', name='Yakutsk pier', latitude=62.03, longitude=129.75, city_id='Yakutsk'),
        Stop(id='lensk-pier', name='Lensk pier', latitude=60.72, longitude=114.92, city_id='Lensk'),
    ])
    repos['routes'].save_routes_batch([
        Route(id='lena-ferry', from_stop_id='yak-pier', to_stop_id='lensk-pier', transport_type='FERRY',
              duration_minutes=2880),
    ])

    result = _builder(repos).execute()

    assert result.success and not result.skipped
    assert repos['graphs'].get_active_graph_metadata() is not None
    assert repos['graphs'].get_neighbors('yak-pier')[0]['weight'] == 2880


def test_ferry_weight_uses_injected_clock(repos, dataset):
    repos['stops'].save_real_stops_batch([
        Stop(id='pier-a', name='Pier A', latitude=62.0, longitude=129.7, city_id='Yakutsk'),
        Stop(id='pier-b', name='Pier B', latitude=61.9, longitude=129.6, city_id='Nizhny Bestyakh'),
    ])
    repos['routes'].save_routes_batch([
        Route(id='ferry', from_stop_id='pier-a', to_stop_id='pier-b', transport_type='FERRY',
              metadata={'ferrySchedule': {'days': [1, 2, 3, 4, 5, 6, 7]}}),
    ])

    _builder(repos, clock=lambda: datetime(2024, 7, 1)).execute()

    assert repos['graphs'].get_neighbors('pier-a')[0]['weight'] == 37.5


def test_writes_backup(repos, dataset, tmp_path):
    _seed_small_network(repos)

    _builder(repos, backup_dir=str(tmp_path)).execute()

    active = repos['graphs'].get_active_graph_metadata()
    assert active.backup_path == os.path.join(str(tmp_path), 'graph', f'export-{active.version}.json')
    with open(active.backup_path, encoding='utf-8') as f:
        backup = json.load(f)
    assert backup['version'] == active.version
    assert 'yak-airport' in backup['neighbors']


def test_pipeline_over_synthesized_entities(repos, dataset, alpha_stop, cache):
    VirtualEntitiesGeneratorWorker(
        repos['stops'], repos['routes'], repos['flights'], repos['datasets'],
        city_directory=CITY_DIRECTORY, hub_city='Alpha', horizon_days=2, silent=True,
    ).execute()

    result = _builder(repos).execute()

    assert result.success
    active = repos['graphs'].get_active_graph_metadata()
    assert active.total_nodes == 3
    # flight edges and topology edges share route ids, so each route yields one edge
    assert active.total_edges == 4
    for neighbor in repos['graphs'].get_neighbors(alpha_stop.id):
        assert neighbor['weight'] >= 60
        assert neighbor['metadata']['transportType'] == 'SHUTTLE'
