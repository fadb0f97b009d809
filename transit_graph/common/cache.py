import logging
import os
from typing import Optional

import redis


def get_cache_client(redis_url: Optional[str] = None) -> redis.Redis:
    """Cache client for published graphs.

    Anything exposing ``get``/``set``/``delete`` with string values works as a
    replacement; the graph repository only relies on those three calls.
    """
    redis_url = redis_url or os.getenv("REDIS_URL")

    if not redis_url:
        raise ValueError(
            "REDIS_URL environment variable is not set. "
        )

    logging.info("Connecting to graph cache...")
    return redis.Redis.from_url(redis_url, decode_responses=True)
