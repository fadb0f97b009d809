import json
import logging
import math
from typing import Dict, Optional

import requests

# settlements of the region the network has to reach
DEFAULT_CITY_DIRECTORY = {
    'Якутск': {'latitude': 62.0355, 'longitude': 129.6755},
    'Мирный': {'latitude': 62.5354, 'longitude': 113.9564},
    'Нерюнгри': {'latitude': 56.6669, 'longitude': 124.7164},
    'Ленск': {'latitude': 60.7242, 'longitude': 114.9166},
    'Алдан': {'latitude': 58.6031, 'longitude': 125.3883},
    'Удачный': {'latitude': 66.4167, 'longitude': 112.4000},
    'Вилюйск': {'latitude': 63.7547, 'longitude': 121.6274},
    'Нюрба': {'latitude': 63.2842, 'longitude': 118.3362},
    'Покровск': {'latitude': 61.4833, 'longitude': 129.1500},
    'Олёкминск': {'latitude': 60.3744, 'longitude': 120.4272},
}

CityDirectory = Dict[str, Dict[str, float]]


def fetch_city_directory(url: str, timeout: int = 30) -> dict:
    logging.info(f"Fetching city directory from {url}...")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logging.error(f"Error fetching city directory: {e}")
        raise
    logging.info(f"Successfully fetched {len(data)} cities.")
    return data


def _clean_directory(raw: dict) -> CityDirectory:
    directory = {}
    for city_name, coords in raw.items():
        try:
            lat = float(coords['latitude'])
            lon = float(coords['longitude'])
        except (KeyError, TypeError, ValueError):
            logging.warning(f"Skipping city {city_name!r}: missing or invalid coordinates")
            continue
        if math.isnan(lat) or math.isnan(lon):
            logging.warning(f"Skipping city {city_name!r}: NaN coordinates")
            continue
        directory[city_name] = {'latitude': lat, 'longitude': lon}
    return directory


def load_city_directory(source: Optional[str] = None) -> CityDirectory:
    """City name -> coordinates, from the built-in table, a JSON file, or a URL."""
    if not source:
        raw = DEFAULT_CITY_DIRECTORY
    elif source.startswith(('http://', 'https://')):
        raw = fetch_city_directory(source)
    else:
        with open(source, encoding='utf-8') as f:
            raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError("City directory must be a JSON object of city -> {latitude, longitude}")

    directory = _clean_directory(raw)
    logging.info(f"Loaded city directory with {len(directory)} cities")
    return directory
