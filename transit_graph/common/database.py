import logging
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from transit_graph.common.schema import metadata


def get_db_engine(db_url: Optional[str] = None, create_tables: bool = True) -> Engine:
    db_url = db_url or os.getenv("DATABASE_URL")

    if not db_url:
        raise ValueError(
            "DATABASE_URL environment variable is not set. "
        )

    logging.info("Creating database engine...")
    engine = create_engine(db_url)
    if create_tables:
        metadata.create_all(engine)
    logging.info("Database engine created successfully.")
    return engine
