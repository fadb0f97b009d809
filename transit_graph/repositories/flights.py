from typing import List

from transit_graph.common.models import Flight
from transit_graph.common.schema import flights
from transit_graph.repositories.base import TableRepository


class FlightRepository(TableRepository):
    model = Flight

    def get_all_flights(self) -> List[Flight]:
        return self._read(flights)

    def count_flights(self) -> int:
        return self._count(flights)

    def count_virtual_flights(self) -> int:
        return self._count(flights, flights.c.is_virtual.is_(True))

    def save_flights_batch(self, batch: List[Flight]) -> List[Flight]:
        return self._upsert(flights, batch)
