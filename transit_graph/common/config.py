import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_HUB_CITY = 'Якутск'


class PipelineConfig(BaseModel):
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    hub_city: str = DEFAULT_HUB_CITY
    horizon_days: int = Field(default=365, ge=1)
    # without a hub, a full mesh is only generated up to this many virtual stops
    mesh_cap: int = Field(default=50, ge=2)
    mesh_neighbours: int = Field(default=3, ge=1)
    backup_dir: Optional[str] = None
    city_directory: Optional[str] = None
    lease_ttl_seconds: int = Field(default=3600, ge=1)


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    try:
        return int(value) if value else default
    except ValueError:
        return default


def resolve_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        database_url=os.getenv('DATABASE_URL'),
        redis_url=os.getenv('REDIS_URL'),
        hub_city=os.getenv('TG_HUB_CITY') or DEFAULT_HUB_CITY,
        horizon_days=max(1, _int_from_env('TG_HORIZON_DAYS', 365)),
        mesh_cap=max(2, _int_from_env('TG_MESH_CAP', 50)),
        mesh_neighbours=max(1, _int_from_env('TG_MESH_NEIGHBOURS', 3)),
        backup_dir=os.getenv('TG_BACKUP_DIR') or None,
        city_directory=os.getenv('TG_CITY_DIRECTORY') or None,
        lease_ttl_seconds=max(1, _int_from_env('TG_LEASE_TTL', 3600)),
    )
