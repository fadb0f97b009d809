"""Node and edge derivation for the routable graph.

Edges are collected in an insert-if-absent map, filled in a fixed order:
flight edges, then route topology edges, then same-city transfers. An edge
added by an earlier phase is never replaced by a later one.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from tqdm import tqdm

from transit_graph.common.models import Flight, Route, Stop, TransportType
from transit_graph.processing.stop_types import (
    HeuristicStopTypeClassifier,
    StopTypeClassifier,
    transfer_weight,
)
from transit_graph.processing.utils import trip_duration_minutes

DEFAULT_FLIGHT_WEIGHT = 180
DEFAULT_ROUTE_WEIGHT = 60
DEFAULT_FERRY_DURATION = 20
SUMMER_FERRY_WAIT = 17.5
WINTER_FERRY_WAIT = 37.5
TRANSFER_KEY = 'TRANSFER'
DIRECT_KEY = 'direct'


@dataclass(frozen=True)
class GraphNode:
    id: str
    latitude: Optional[float]
    longitude: Optional[float]
    city_id: Optional[str]
    # no city_id; weaker than Stop.is_virtual and kept separate on purpose
    is_virtual: bool


@dataclass(frozen=True)
class GraphEdge:
    from_stop_id: str
    to_stop_id: str
    weight: float
    distance: Optional[float] = None
    transport_type: Optional[str] = None
    route_id: Optional[str] = None


EdgeKey = Tuple[str, str, str]


class EdgeMap:
    def __init__(self):
        self._edges: Dict[EdgeKey, GraphEdge] = {}

    def add(self, key: EdgeKey, edge: GraphEdge) -> bool:
        if key in self._edges:
            return False
        self._edges[key] = edge
        return True

    def __contains__(self, key) -> bool:
        return key in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[GraphEdge]:
        return iter(self._edges.values())

    def get(self, key: EdgeKey) -> Optional[GraphEdge]:
        return self._edges.get(key)

    def edges(self) -> List[GraphEdge]:
        return list(self._edges.values())


def normalize_routes(routes: Sequence[Route]) -> List[Route]:
    normalized = []
    for route in routes:
        if route.stops_sequence:
            normalized.append(route)
        else:
            normalized.append(route.model_copy(update={'stops_sequence': [route.from_stop_id, route.to_stop_id]}))
    return normalized


def build_nodes(stops: Sequence[Stop]) -> List[GraphNode]:
    return [
        GraphNode(
            id=stop.id,
            latitude=stop.latitude,
            longitude=stop.longitude,
            city_id=stop.city_id,
            is_virtual=not stop.city_id,
        )
        for stop in stops
    ]


def is_summer_month(month: int) -> bool:
    return 4 <= month <= 9


def seasonal_ferry_weight(base_duration: float, month: int) -> float:
    wait = SUMMER_FERRY_WAIT if is_summer_month(month) else WINTER_FERRY_WAIT
    return base_duration + wait


def ferry_weight(route: Optional[Route], today: date) -> Optional[float]:
    """Seasonal weight for ferry routes that carry a ferry schedule, else None."""
    if route is None or route.transport_type != TransportType.ferry.value:
        return None
    if not (route.metadata or {}).get('ferrySchedule'):
        return None
    return seasonal_ferry_weight(route.duration_minutes or DEFAULT_FERRY_DURATION, today.month)


def add_flight_edges(edge_map: EdgeMap, flights: Sequence[Flight], routes_by_id: Dict[str, Route],
                     today: date, silent: bool = False) -> int:
    added = 0
    for flight in tqdm(flights, desc="Flight edges", disable=silent):
        key = (flight.from_stop_id, flight.to_stop_id, flight.route_id or DIRECT_KEY)
        if key in edge_map:
            continue

        weight = trip_duration_minutes(flight.departure_time, flight.arrival_time) or DEFAULT_FLIGHT_WEIGHT
        route = routes_by_id.get(flight.route_id) if flight.route_id else None
        seasonal = ferry_weight(route, today)
        if seasonal is not None:
            weight = seasonal

        edge_map.add(key, GraphEdge(
            from_stop_id=flight.from_stop_id,
            to_stop_id=flight.to_stop_id,
            weight=weight,
            distance=route.distance_km if route else None,
            transport_type=route.transport_type if route else flight.transport_type,
            route_id=flight.route_id,
        ))
        added += 1
    return added


def add_route_edges(edge_map: EdgeMap, routes: Sequence[Route], today: date) -> int:
    added = 0
    for route in routes:
        sequence = route.stops_sequence
        if len(sequence) < 2:
            continue
        seasonal = ferry_weight(route, today)
        weight = seasonal if seasonal is not None else (route.duration_minutes or DEFAULT_ROUTE_WEIGHT)
        for from_stop_id, to_stop_id in zip(sequence, sequence[1:]):
            if edge_map.add((from_stop_id, to_stop_id, route.id), GraphEdge(
                from_stop_id=from_stop_id,
                to_stop_id=to_stop_id,
                weight=weight,
                distance=route.distance_km,
                transport_type=route.transport_type,
                route_id=route.id,
            )):
                added += 1
    return added


def add_transfer_edges(edge_map: EdgeMap, stops: Sequence[Stop], classifier: StopTypeClassifier) -> int:
    stops_by_city: Dict[str, List[Stop]] = {}
    for stop in stops:
        if stop.city_id:
            stops_by_city.setdefault(stop.city_id, []).append(stop)

    added = 0
    for city_stops in stops_by_city.values():
        if len(city_stops) < 2:
            continue
        types = {stop.id: classifier.classify(stop) for stop in city_stops}
        for i, a in enumerate(city_stops):
            for b in city_stops[i + 1:]:
                for src, dst in ((a, b), (b, a)):
                    if edge_map.add((src.id, dst.id, TRANSFER_KEY), GraphEdge(
                        from_stop_id=src.id,
                        to_stop_id=dst.id,
                        weight=transfer_weight(types[src.id], types[dst.id]),
                        transport_type=TransportType.transfer.value,
                    )):
                        added += 1
    return added


def build_graph_structure(stops: Sequence[Stop], routes: Sequence[Route], flights: Sequence[Flight],
                          classifier: Optional[StopTypeClassifier] = None, today: Optional[date] = None,
                          silent: bool = False) -> Tuple[List[GraphNode], List[GraphEdge]]:
    classifier = classifier or HeuristicStopTypeClassifier()
    today = today or date.today()
    routes = normalize_routes(routes)
    routes_by_id = {route.id: route for route in routes}

    nodes = build_nodes(stops)
    edge_map = EdgeMap()

    flight_edges = add_flight_edges(edge_map, flights, routes_by_id, today, silent=silent)
    route_edges = add_route_edges(edge_map, routes, today)
    transfer_edges = add_transfer_edges(edge_map, stops, classifier)
    logging.info(
        f"Derived {len(edge_map)} edges: {flight_edges} from flights, "
        f"{route_edges} from route topology, {transfer_edges} transfers"
    )
    return nodes, edge_map.edges()
