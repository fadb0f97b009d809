import logging
from datetime import datetime, timedelta

from sqlalchemy import and_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from transit_graph.common.schema import worker_leases


class LeaseRepository:
    """Row-per-claim mutual exclusion backed by a unique (worker_id, scope) key."""

    def __init__(self, engine: Engine, ttl_seconds: int = 3600):
        self.engine = engine
        self.ttl = timedelta(seconds=ttl_seconds)

    def _insert(self, worker_id: str, scope: str) -> bool:
        try:
            with self.engine.begin() as conn:
                conn.execute(worker_leases.insert().values(
                    worker_id=worker_id, scope=scope, claimed_at=datetime.now()
                ))
            return True
        except IntegrityError:
            return False

    def acquire(self, worker_id: str, scope: str = 'global') -> bool:
        if self._insert(worker_id, scope):
            return True

        # a lease older than the ttl belongs to a crashed run
        cutoff = datetime.now() - self.ttl
        with self.engine.begin() as conn:
            expired = conn.execute(
                worker_leases.delete().where(and_(
                    worker_leases.c.worker_id == worker_id,
                    worker_leases.c.scope == scope,
                    worker_leases.c.claimed_at < cutoff,
                ))
            ).rowcount
        if expired:
            logging.warning(f"Reclaimed expired lease {worker_id}/{scope}")
            return self._insert(worker_id, scope)
        return False

    def release(self, worker_id: str, scope: str = 'global') -> None:
        with self.engine.begin() as conn:
            conn.execute(worker_leases.delete().where(and_(
                worker_leases.c.worker_id == worker_id,
                worker_leases.c.scope == scope,
            )))
