from typing import List

from transit_graph.common.models import Stop
from transit_graph.common.schema import stops, virtual_stops
from transit_graph.processing.utils import normalize_city
from transit_graph.repositories.base import TableRepository


class StopRepository(TableRepository):
    model = Stop

    def get_all_real_stops(self) -> List[Stop]:
        return self._read(stops, overrides={'is_virtual': False})

    def get_all_virtual_stops(self) -> List[Stop]:
        return self._read(virtual_stops, overrides={'is_virtual': True})

    def count_real_stops(self) -> int:
        return self._count(stops)

    def count_virtual_stops(self) -> int:
        return self._count(virtual_stops)

    # city ids are free text, so matching happens on the normalized form
    def get_real_stops_by_city(self, city: str) -> List[Stop]:
        target = normalize_city(city)
        return [s for s in self.get_all_real_stops() if s.city_id and normalize_city(s.city_id) == target]

    def get_virtual_stops_by_city(self, city: str) -> List[Stop]:
        target = normalize_city(city)
        return [s for s in self.get_all_virtual_stops() if s.city_id and normalize_city(s.city_id) == target]

    def save_real_stops_batch(self, batch: List[Stop]) -> List[Stop]:
        return self._upsert(stops, batch)

    def save_virtual_stops_batch(self, batch: List[Stop]) -> List[Stop]:
        return self._upsert(virtual_stops, batch)
