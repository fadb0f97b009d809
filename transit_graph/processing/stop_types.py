from typing import Dict, Tuple

from transit_graph.common.models import Stop, StopType

FERRY_MARKERS = ('паром', 'ferry', 'переправа', 'пристань')
AIRPORT_MARKERS = ('аэропорт', 'airport')

# minutes, keyed by (from type, to type); direction matters
TRANSFER_WEIGHTS: Dict[Tuple[StopType, StopType], int] = {
    (StopType.airport, StopType.ground): 90,
    (StopType.ground, StopType.airport): 120,
    (StopType.airport, StopType.ferry_terminal): 90,
    (StopType.ferry_terminal, StopType.ground): 30,
    (StopType.ground, StopType.ferry_terminal): 30,
    (StopType.ferry_terminal, StopType.airport): 90,
    (StopType.ground, StopType.ground): 60,
}
DEFAULT_TRANSFER_WEIGHT = 60


class StopTypeClassifier:
    def classify(self, stop: Stop) -> StopType:
        raise NotImplementedError


class HeuristicStopTypeClassifier(StopTypeClassifier):
    """Explicit ``stop_type`` first, then metadata and id substrings."""

    def classify(self, stop: Stop) -> StopType:
        if stop.stop_type:
            return StopType(stop.stop_type)

        stop_id = stop.id.lower()
        metadata = stop.metadata or {}
        if metadata.get('type') == StopType.ferry_terminal.value or any(m in stop_id for m in FERRY_MARKERS):
            return StopType.ferry_terminal
        if stop.is_airport or any(m in stop_id for m in AIRPORT_MARKERS):
            return StopType.airport
        return StopType.ground


class MappingStopTypeClassifier(StopTypeClassifier):
    def __init__(self, types: Dict[str, StopType], default: StopType = StopType.ground):
        self.types = types
        self.default = default

    def classify(self, stop: Stop) -> StopType:
        return StopType(self.types.get(stop.id, self.default))


def transfer_weight(from_type: StopType, to_type: StopType) -> int:
    return TRANSFER_WEIGHTS.get((StopType(from_type), StopType(to_type)), DEFAULT_TRANSFER_WEIGHT)
