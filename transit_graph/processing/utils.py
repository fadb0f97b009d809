import hashlib
import math
import re
import unicodedata
from typing import Optional

import numpy as np

EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 60
MIN_DURATION_MINUTES = 60
MINUTES_PER_DAY = 24 * 60

_CITY_STRIP_RE = re.compile(r'[^a-z0-9а-я]')


def normalize_city(city_name):
    """Lower-case and drop everything outside [a-z0-9а-я]; 'ё' falls outside and is dropped too."""
    if not isinstance(city_name, str):
        return ''
    return _CITY_STRIP_RE.sub('', city_name.lower().strip())


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize('NFKD', text.lower().strip())
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def stable_id(*parts: str, fold: bool = True) -> str:
    key = '|'.join(_fold(p) if fold else p for p in parts)
    return hashlib.sha1(key.encode('utf-8')).hexdigest()[:16]


def virtual_stop_id(city_name: str) -> str:
    return f"virtual-stop-{stable_id(city_name)}"


def virtual_route_id(from_stop_id: str, to_stop_id: str) -> str:
    return f"virtual-route-{stable_id(from_stop_id, to_stop_id, fold=False)}"


def virtual_flight_id(route_id: str, day_offset: int, slot_index: int) -> str:
    return f"virtual-flight-{route_id}-{day_offset}-{slot_index}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _has_coordinates(lat, lon) -> bool:
    for value in (lat, lon):
        if value is None:
            return False
        if isinstance(value, float) and math.isnan(value):
            return False
    return True


def haversine_km(lat1, lon1, lat2, lon2) -> int:
    """Great-circle distance in whole kilometres, 0 when a coordinate is missing."""
    if not (_has_coordinates(lat1, lon1) and _has_coordinates(lat2, lon2)):
        return 0
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) *
         math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _round_half_up(EARTH_RADIUS_KM * c)


def stop_distance_km(stop_a, stop_b) -> int:
    return haversine_km(stop_a.latitude, stop_a.longitude, stop_b.latitude, stop_b.longitude)


def estimate_duration_minutes(distance_km: float) -> int:
    duration = distance_km / AVERAGE_SPEED_KMH * 60
    return max(MIN_DURATION_MINUTES, _round_half_up(duration))


def estimate_stop_duration(stop_a, stop_b) -> int:
    return estimate_duration_minutes(stop_distance_km(stop_a, stop_b))


def haversine_vec_km(lat1, lon1, lat2, lon2):
    """Vectorized haversine returning kilometres. Missing coordinates give inf."""
    lat1 = np.asarray(lat1, dtype='float64')
    lon1 = np.asarray(lon1, dtype='float64')
    lat2 = np.asarray(lat2, dtype='float64')
    lon2 = np.asarray(lon2, dtype='float64')
    lat1, lon1, lat2, lon2 = np.broadcast_arrays(lat1, lon1, lat2, lon2)
    mask = (~np.isnan(lat1)) & (~np.isnan(lon1)) & (~np.isnan(lat2)) & (~np.isnan(lon2))
    out = np.full(lat1.shape, np.inf, dtype='float64')
    if mask.any():
        dlat = np.radians(lat2[mask] - lat1[mask])
        dlon = np.radians(lon2[mask] - lon1[mask])
        a = (np.sin(dlat/2)**2 + np.cos(np.radians(lat1[mask])) *
             np.cos(np.radians(lat2[mask])) * np.sin(dlon/2)**2)
        out[mask] = EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return out


def parse_hhmm(value) -> Optional[int]:
    if not isinstance(value, str):
        return None
    parts = value.strip().split(':')
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return None


def format_hhmm(total_minutes: int) -> str:
    hours, minutes = divmod(int(total_minutes) % MINUTES_PER_DAY, 60)
    return f"{hours:02}:{minutes:02}"


def trip_duration_minutes(departure_time, arrival_time) -> Optional[int]:
    """Arrival minus departure with overnight wrap; None when unusable."""
    departure = parse_hhmm(departure_time)
    arrival = parse_hhmm(arrival_time)
    if departure is None or arrival is None:
        return None
    duration = arrival - departure
    if duration < 0:
        duration += MINUTES_PER_DAY
    if 0 < duration < 10000:
        return duration
    return None
