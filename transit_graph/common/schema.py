from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()


def _stop_columns():
    return [
        Column('id', String, primary_key=True),
        Column('name', String, nullable=False),
        Column('latitude', Float),
        Column('longitude', Float),
        Column('city_id', String, index=True),
        Column('is_airport', Boolean, default=False),
        Column('is_railway_station', Boolean, default=False),
        Column('stop_type', String),
        Column('metadata', JSON(none_as_null=True)),
        Column('created_at', DateTime),
    ]


def _route_columns():
    return [
        Column('id', String, primary_key=True),
        Column('from_stop_id', String, nullable=False, index=True),
        Column('to_stop_id', String, nullable=False, index=True),
        Column('transport_type', String, nullable=False),
        Column('distance_km', Float),
        Column('duration_minutes', Float),
        Column('metadata', JSON(none_as_null=True)),
        Column('created_at', DateTime),
    ]


stops = Table('stops', metadata, *_stop_columns())

virtual_stops = Table(
    'virtual_stops',
    metadata,
    *_stop_columns(),
    Column('grid_type', String, nullable=False, default='MAIN_GRID'),
)

routes = Table(
    'routes',
    metadata,
    *_route_columns(),
    Column('stops_sequence', JSON(none_as_null=True)),
)

virtual_routes = Table(
    'virtual_routes',
    metadata,
    *_route_columns(),
    Column('route_type', String, nullable=False),
)

flights = Table(
    'flights',
    metadata,
    Column('id', String, primary_key=True),
    Column('route_id', String, index=True),
    Column('from_stop_id', String, nullable=False),
    Column('to_stop_id', String, nullable=False),
    Column('departure_time', String),
    Column('arrival_time', String),
    Column('days_of_week', JSON),
    Column('price', Float),
    Column('is_virtual', Boolean, nullable=False, default=False),
    Column('transport_type', String),
    Column('metadata', JSON(none_as_null=True)),
    Column('created_at', DateTime),
)

datasets = Table(
    'datasets',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('version', String, nullable=False, unique=True),
    Column('source_type', String, nullable=False, default='ODATA'),
    Column('quality_score', Float),
    Column('total_stops', Integer, default=0),
    Column('total_routes', Integer, default=0),
    Column('total_flights', Integer, default=0),
    Column('total_virtual_stops', Integer, default=0),
    Column('total_virtual_routes', Integer, default=0),
    Column('content_hash', String),
    Column('metadata', JSON(none_as_null=True)),
    Column('created_at', DateTime),
    Column('is_active', Boolean, default=False),
)

# dataset_version is not unique: a dataset may own several graph records
graphs = Table(
    'graphs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('version', String, nullable=False, unique=True),
    Column('dataset_version', String, nullable=False, index=True),
    Column('total_nodes', Integer, nullable=False),
    Column('total_edges', Integer, nullable=False),
    Column('build_duration_ms', Integer),
    Column('cache_key', String),
    Column('backup_path', String),
    Column('metadata', JSON(none_as_null=True)),
    Column('created_at', DateTime),
    Column('is_active', Boolean, nullable=False, default=False),
)

worker_leases = Table(
    'worker_leases',
    metadata,
    Column('worker_id', String, nullable=False),
    Column('scope', String, nullable=False),
    Column('claimed_at', DateTime, nullable=False),
    UniqueConstraint('worker_id', 'scope', name='uq_worker_leases_worker_scope'),
)
