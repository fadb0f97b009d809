"""Synthesis of virtual stops, routes and flights for cities without service."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from tqdm import tqdm

from transit_graph.common.models import ALL_WEEKDAYS, Flight, Route, RouteType, Stop, TransportType
from transit_graph.processing.utils import (
    estimate_duration_minutes,
    format_hhmm,
    haversine_vec_km,
    normalize_city,
    stop_distance_km,
    virtual_flight_id,
    virtual_route_id,
    virtual_stop_id,
)

MAIN_GRID = 'MAIN_GRID'
DEPARTURE_HOURS = (8, 16)
DEFAULT_FARE = 1000
DEFAULT_TRIP_DURATION = 180


def find_missing_cities(city_directory: Dict[str, dict], real_stops: Sequence[Stop]) -> List[str]:
    covered = {normalize_city(stop.city_id) for stop in real_stops if stop.city_id}
    return [city for city in city_directory if normalize_city(city) not in covered]


def generate_virtual_stops(city_names: Sequence[str], city_directory: Dict[str, dict],
                           created_at: Optional[datetime] = None) -> List[Stop]:
    created_at = created_at or datetime.now()
    virtual_stops = []
    for city_name in city_names:
        coordinates = city_directory[city_name]
        virtual_stops.append(Stop(
            id=virtual_stop_id(city_name),
            name=f"г. {city_name}",
            latitude=coordinates['latitude'],
            longitude=coordinates['longitude'],
            city_id=city_name,
            is_virtual=True,
            grid_type=MAIN_GRID,
            created_at=created_at,
        ))
    return virtual_stops


def _label(stop: Stop) -> str:
    return stop.city_id or stop.name


def make_virtual_route(from_stop: Stop, to_stop: Stop, route_type: RouteType, method: str,
                       created_at: Optional[datetime] = None) -> Route:
    distance = stop_distance_km(from_stop, to_stop)
    return Route(
        id=virtual_route_id(from_stop.id, to_stop.id),
        from_stop_id=from_stop.id,
        to_stop_id=to_stop.id,
        transport_type=TransportType.shuttle,
        distance_km=distance,
        duration_minutes=estimate_duration_minutes(distance),
        metadata={'name': f"{_label(from_stop)} → {_label(to_stop)}", 'generationMethod': method},
        is_virtual=True,
        route_type=route_type,
        created_at=created_at or datetime.now(),
    )


def generate_hub_routes(virtual_stops: Sequence[Stop], hub: Stop) -> List[Route]:
    """One route to and one from the hub for every virtual stop."""
    created_at = datetime.now()
    to_hub_type = RouteType.virtual_to_virtual if hub.is_virtual else RouteType.virtual_to_real
    from_hub_type = RouteType.virtual_to_virtual if hub.is_virtual else RouteType.real_to_virtual

    routes = []
    for stop in virtual_stops:
        if stop.id == hub.id:
            continue
        routes.append(make_virtual_route(stop, hub, to_hub_type, 'hub-based', created_at))
        routes.append(make_virtual_route(hub, stop, from_hub_type, 'hub-based', created_at))
    return routes


def _pairs_full_mesh(n: int) -> List[Tuple[int, int]]:
    return [(i, j) for i in range(n) for j in range(i + 1, n)]


def _pairs_bounded_mesh(stops: Sequence[Stop], neighbours: int) -> List[Tuple[int, int]]:
    # k nearest neighbours plus a minimum spanning tree, so the result stays connected
    lat = np.array([s.latitude if s.latitude is not None else np.nan for s in stops], dtype='float64')
    lon = np.array([s.longitude if s.longitude is not None else np.nan for s in stops], dtype='float64')
    dist = haversine_vec_km(lat[:, None], lon[:, None], lat[None, :], lon[None, :])
    n = len(stops)
    np.fill_diagonal(dist, np.inf)

    pairs: Set[Tuple[int, int]] = set()
    k = min(neighbours, n - 1)
    nearest = np.argsort(dist, axis=1, kind='stable')[:, :k]
    for i in range(n):
        for j in nearest[i]:
            j = int(j)
            pairs.add((min(i, j), max(i, j)))

    in_tree = np.zeros(n, dtype=bool)
    in_tree[0] = True
    best = dist[0].copy()
    parent = np.zeros(n, dtype=int)
    for _ in range(n - 1):
        # unreachable stops (no coordinates) still get attached to the tree
        candidates = np.where(np.isinf(best), np.finfo('float64').max, best)
        candidates[in_tree] = np.inf
        j = int(np.argmin(candidates))
        pairs.add((min(int(parent[j]), j), max(int(parent[j]), j)))
        in_tree[j] = True
        closer = dist[j] < best
        best = np.where(closer, dist[j], best)
        parent = np.where(closer, j, parent)

    return sorted(pairs)


def generate_mesh_routes(virtual_stops: Sequence[Stop], mesh_cap: int = 50, neighbours: int = 3) -> List[Route]:
    """Bidirectional routes among virtual stops when no hub exists.

    Up to ``mesh_cap`` stops every pair is connected. Above it, each stop links
    to its ``neighbours`` nearest stops plus a spanning tree, which keeps the
    route count linear in the number of stops.
    """
    n = len(virtual_stops)
    if n < 2:
        return []
    if n <= mesh_cap:
        pairs = _pairs_full_mesh(n)
        method = 'direct'
    else:
        logging.warning(f"{n} virtual stops exceed mesh cap {mesh_cap}; using nearest-neighbour mesh")
        pairs = _pairs_bounded_mesh(virtual_stops, neighbours)
        method = 'nearest-neighbour'

    created_at = datetime.now()
    routes = []
    for i, j in pairs:
        a, b = virtual_stops[i], virtual_stops[j]
        routes.append(make_virtual_route(a, b, RouteType.virtual_to_virtual, method, created_at))
        routes.append(make_virtual_route(b, a, RouteType.virtual_to_virtual, method, created_at))
    return routes


def generate_virtual_flights(virtual_routes: Sequence[Route], horizon_days: int = 365,
                             departure_hours: Sequence[int] = DEPARTURE_HOURS, silent: bool = False) -> List[Flight]:
    created_at = datetime.now()
    flights = []
    for route in tqdm(virtual_routes, desc="Generating virtual flights", disable=silent):
        duration = int(route.duration_minutes or DEFAULT_TRIP_DURATION)
        price = (route.metadata or {}).get('baseFare') or DEFAULT_FARE
        for day in range(horizon_days):
            for slot, hour in enumerate(departure_hours):
                departure = hour * 60
                flights.append(Flight(
                    id=virtual_flight_id(route.id, day, slot),
                    route_id=route.id,
                    from_stop_id=route.from_stop_id,
                    to_stop_id=route.to_stop_id,
                    departure_time=format_hhmm(departure),
                    arrival_time=format_hhmm(departure + duration),
                    days_of_week=list(ALL_WEEKDAYS),
                    price=price,
                    is_virtual=True,
                    metadata={'createdBy': 'system', 'generationMethod': 'virtual-route-flight'},
                    created_at=created_at,
                ))
    return flights
