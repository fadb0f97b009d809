import hashlib
import json
import logging
import os
from typing import List, Optional

from sqlalchemy.engine import Engine

from transit_graph.common.models import Dataset, Flight, Route, Stop
from transit_graph.repositories.datasets import DatasetRepository
from transit_graph.repositories.flights import FlightRepository
from transit_graph.repositories.routes import RouteRepository
from transit_graph.repositories.stops import StopRepository

RAW_FILES = ('stops.json', 'routes.json', 'flights.json')


def _read_records(path: str, silent=False) -> list:
    if not os.path.exists(path):
        if not silent:
            logging.warning(f"{os.path.basename(path)} not found in {os.path.dirname(path)}, treating as empty")
        return []
    with open(path, 'rb') as f:
        data = json.loads(f.read().decode('utf-8'))
    # OData exports wrap records in {"value": [...]}
    if isinstance(data, dict):
        data = data.get('value', [])
    return data


def dataset_version_for(raw_payloads: List[bytes]) -> str:
    digest = hashlib.sha256()
    for payload in raw_payloads:
        digest.update(payload)
    return f"dataset-{digest.hexdigest()[:12]}"


def _raw_payloads(data_dir: str) -> List[bytes]:
    payloads = []
    for name in RAW_FILES:
        path = os.path.join(data_dir, name)
        if os.path.exists(path):
            with open(path, 'rb') as f:
                payloads.append(f.read())
        else:
            payloads.append(b'')
    return payloads


def load_real_dataset(data_dir: str, engine: Engine, silent=False) -> Optional[Dataset]:
    """Load stops, routes and flights exported by the upstream sync into the real tables.

    Registers a dataset version derived from the file contents. Loading the
    same files twice is a no-op and returns the existing dataset.
    """
    dataset_repository = DatasetRepository(engine)
    version = dataset_version_for(_raw_payloads(data_dir))
    existing = dataset_repository.get_dataset(version)
    if existing is not None:
        logging.info(f"Dataset {version} already loaded - skipping")
        return existing

    raw_stops = _read_records(os.path.join(data_dir, 'stops.json'), silent)
    raw_routes = _read_records(os.path.join(data_dir, 'routes.json'), silent)
    raw_flights = _read_records(os.path.join(data_dir, 'flights.json'), silent)
    if not raw_stops:
        logging.error(f"No stops found in {data_dir}. Aborting dataset load.")
        return None

    logging.info("Processing stops...")
    stops = [Stop.model_validate(record) for record in raw_stops]
    StopRepository(engine).save_real_stops_batch(stops)
    logging.info(f"Loaded {len(stops)} records into 'stops' table.")

    logging.info("Processing routes...")
    routes = [Route.model_validate(record) for record in raw_routes]
    RouteRepository(engine).save_routes_batch(routes)
    logging.info(f"Loaded {len(routes)} records into 'routes' table.")

    logging.info("Processing flights...")
    flights = [Flight.model_validate(record) for record in raw_flights]
    FlightRepository(engine).save_flights_batch(flights)
    logging.info(f"Loaded {len(flights)} records into 'flights' table.")

    dataset = dataset_repository.create_dataset(Dataset(
        version=version,
        source_type='ODATA',
        total_stops=len(stops),
        total_routes=len(routes),
        total_flights=len(flights),
        content_hash=version.split('-', 1)[1],
        metadata={'sourceDir': os.path.abspath(data_dir)},
        is_active=True,
    ))
    logging.info(f"Registered dataset {dataset.version}")
    return dataset
