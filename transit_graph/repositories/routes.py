from typing import List

from transit_graph.common.models import Route
from transit_graph.common.schema import routes, virtual_routes
from transit_graph.repositories.base import TableRepository


class RouteRepository(TableRepository):
    model = Route

    def get_all_routes(self) -> List[Route]:
        return self._read(routes, overrides={'is_virtual': False})

    def get_all_virtual_routes(self) -> List[Route]:
        return self._read(virtual_routes, overrides={'is_virtual': True})

    def count_routes(self) -> int:
        return self._count(routes)

    def count_virtual_routes(self) -> int:
        return self._count(virtual_routes)

    def save_routes_batch(self, batch: List[Route]) -> List[Route]:
        return self._upsert(routes, batch)

    def save_virtual_routes_batch(self, batch: List[Route]) -> List[Route]:
        return self._upsert(virtual_routes, batch)
