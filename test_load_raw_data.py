import json

import pytest

from transit_graph.common.schema import datasets
from transit_graph.ingest.city_directory import DEFAULT_CITY_DIRECTORY, load_city_directory
from transit_graph.processing.load_raw_data import load_real_dataset
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository


@pytest.fixture
def raw_dir(tmp_path):
    data_dir = tmp_path / 'raw'
    data_dir.mkdir()
    (data_dir / 'stops.json').write_text(json.dumps({'value': [
        {'id': 's1', 'name': 'Аэропорт Якутск', 'latitude': 62.09, 'longitude': 129.77,
         'cityId': 'Якутск', 'isAirport': True},
        {'id': 's2', 'name': 'Автовокзал', 'latitude': 62.03, 'longitude': 129.73, 'cityId': 'Якутск'},
    ]}, ensure_ascii=False), encoding='utf-8')
    (data_dir / 'routes.json').write_text(json.dumps([
        {'id': 'r1', 'fromStopId': 's2', 'toStopId': 's1', 'transportType': 'bus', 'durationMinutes': 40,
         'stopsSequence': [{'stopId': 's2', 'order': 1}, {'stopId': 's1', 'order': 2}]},
    ]), encoding='utf-8')
    (data_dir / 'flights.json').write_text(json.dumps([
        {'id': 'f1', 'routeId': 'r1', 'fromStopId': 's2', 'toStopId': 's1',
         'departureTime': '07:00', 'arrivalTime': '07:40', 'price': 120},
    ]), encoding='utf-8')
    return data_dir


def test_load_real_dataset(engine, raw_dir):
    dataset = load_real_dataset(str(raw_dir), engine, silent=True)

    assert dataset.version.startswith('dataset-')
    assert dataset.total_stops == 2
    assert DatasetRepository(engine).get_latest_dataset().version == dataset.version

    stops = {s.id: s for s in StopRepository(engine).get_all_real_stops()}
    assert stops['s1'].is_airport is True
    assert stops['s1'].city_id == 'Якутск'
    route = RouteRepository(engine).get_all_routes()[0]
    assert route.stops_sequence == ['s2', 's1']
    assert route.transport_type == 'BUS'
    assert FlightRepository(engine).get_all_flights()[0].price == 120


def test_loading_same_files_twice_is_a_no_op(engine, raw_dir):
    first = load_real_dataset(str(raw_dir), engine, silent=True)
    second = load_real_dataset(str(raw_dir), engine, silent=True)

    assert second.version == first.version
    assert DatasetRepository(engine)._count(datasets) == 1


def test_load_without_stops_returns_none(engine, tmp_path):
    assert load_real_dataset(str(tmp_path), engine, silent=True) is None


def test_default_city_directory():
    directory = load_city_directory()
    assert directory == DEFAULT_CITY_DIRECTORY
    assert 'Якутск' in directory


def test_city_directory_from_file(tmp_path):
    path = tmp_path / 'cities.json'
    path.write_text(json.dumps({
        'Ленск': {'latitude': 60.72, 'longitude': 114.92},
        'Broken': {'latitude': None, 'longitude': 1.0},
        'Missing': {'longitude': 1.0},
    }, ensure_ascii=False), encoding='utf-8')

    assert load_city_directory(str(path)) == {'Ленск': {'latitude': 60.72, 'longitude': 114.92}}


def test_city_directory_must_be_an_object(tmp_path):
    path = tmp_path / 'cities.json'
    path.write_text('[]', encoding='utf-8')
    with pytest.raises(ValueError):
        load_city_directory(str(path))
