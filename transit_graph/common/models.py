from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TransportType(str, Enum):
    bus = "BUS"
    train = "TRAIN"
    airplane = "AIRPLANE"
    ferry = "FERRY"
    shuttle = "SHUTTLE"
    taxi = "TAXI"
    winter_road = "WINTER_ROAD"
    transfer = "TRANSFER"


class StopType(str, Enum):
    airport = "airport"
    ground = "ground"
    ferry_terminal = "ferry_terminal"


class RouteType(str, Enum):
    virtual_to_real = "VIRTUAL_TO_REAL"
    real_to_virtual = "REAL_TO_VIRTUAL"
    virtual_to_virtual = "VIRTUAL_TO_VIRTUAL"


ALL_WEEKDAYS = [1, 2, 3, 4, 5, 6, 7]


class Entity(BaseModel):
    """Base for stored records.

    Raw feeds use camelCase keys (``cityId``, ``isAirport``), the database uses
    snake_case; both are accepted on input and ``model_dump`` emits snake_case.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra='ignore',
    )


class Stop(Entity):
    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city_id: Optional[str] = None
    is_airport: bool = False
    is_railway_station: bool = False
    stop_type: Optional[StopType] = None
    metadata: Optional[Dict[str, Any]] = None
    is_virtual: bool = False
    grid_type: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("is_airport", "is_railway_station", "is_virtual", mode="before")
    @classmethod
    def none_is_false(cls, v):
        return False if v is None else v


class Route(Entity):
    id: str
    from_stop_id: str
    to_stop_id: str
    # empty for virtual routes until the graph loader normalizes it
    stops_sequence: List[str] = Field(default_factory=list)
    transport_type: str = TransportType.bus.value
    distance_km: Optional[float] = None
    duration_minutes: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None
    is_virtual: bool = False
    route_type: Optional[RouteType] = None
    created_at: Optional[datetime] = None

    @field_validator("stops_sequence", mode="before")
    @classmethod
    def flatten_sequence(cls, v):
        # feeds send [{"stopId": .., "order": ..}]; only ordered ids are kept
        if v is None:
            return []
        items = list(v)
        if items and isinstance(items[0], dict):
            if all('order' in item for item in items):
                items = sorted(items, key=lambda item: item['order'])
            return [item.get('stopId') or item.get('stop_id') for item in items]
        return items

    @field_validator("transport_type", mode="before")
    @classmethod
    def upper_transport_type(cls, v):
        if isinstance(v, Enum):
            v = v.value
        return str(v).upper() if v else TransportType.bus.value


class Flight(Entity):
    id: str
    route_id: Optional[str] = None
    from_stop_id: str
    to_stop_id: str
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    days_of_week: List[int] = Field(default_factory=lambda: list(ALL_WEEKDAYS))
    price: Optional[float] = None
    is_virtual: bool = False
    transport_type: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class DatasetStatistics(Entity):
    total_stops: int = 0
    total_routes: int = 0
    total_flights: int = 0
    total_virtual_stops: int = 0
    total_virtual_routes: int = 0


class Dataset(DatasetStatistics):
    id: Optional[int] = None
    version: str
    source_type: str = "ODATA"
    quality_score: Optional[float] = None
    content_hash: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    is_active: bool = False


class GraphMetadata(Entity):
    id: Optional[int] = None
    version: str
    dataset_version: str
    total_nodes: int
    total_edges: int
    build_duration_ms: Optional[int] = None
    cache_key: Optional[str] = None
    backup_path: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    is_active: bool = False
