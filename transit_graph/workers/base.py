import logging
import time
from typing import Optional

from pydantic import BaseModel, Field

from transit_graph.repositories.leases import LeaseRepository


class DataProcessed(BaseModel):
    added: int = 0
    updated: int = 0
    deleted: int = 0


class WorkerExecutionResult(BaseModel):
    success: bool
    worker_id: str
    execution_time_ms: int
    message: str
    data_processed: DataProcessed = Field(default_factory=DataProcessed)
    next_worker: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


class BackgroundWorker:
    """Single-run background job.

    ``execute`` checks ``can_run``, takes the worker's lease, checks again
    under the lease and only then runs ``execute_worker_logic``. Any
    exception from the logic is logged and re-raised; the lease is always
    released.
    """

    def __init__(self, worker_id: str, name: str, version: str,
                 lease_repository: Optional[LeaseRepository] = None):
        self.worker_id = worker_id
        self.name = name
        self.version = version
        self.lease_repository = lease_repository
        self.is_running = False
        self.logger = logging.getLogger(f"transit_graph.workers.{worker_id}")

    def log(self, level: str, message: str) -> None:
        self.logger.log(getattr(logging, level), f"[{self.worker_id}] {message}")

    def can_run(self) -> bool:
        return not self.is_running

    def execute_worker_logic(self) -> WorkerExecutionResult:
        raise NotImplementedError

    def _skip(self, started: float, message: str) -> WorkerExecutionResult:
        self.log('INFO', f"Skipped: {message}")
        return WorkerExecutionResult(
            success=True,
            skipped=True,
            worker_id=self.worker_id,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            message=message,
        )

    def execute(self) -> WorkerExecutionResult:
        started = time.monotonic()
        if not self.can_run():
            return self._skip(started, "preconditions not met")

        if self.lease_repository is not None and not self.lease_repository.acquire(self.worker_id):
            return self._skip(started, "another run holds the lease")

        try:
            if not self.can_run():
                return self._skip(started, "preconditions not met")
            self.is_running = True
            self.log('INFO', f"Starting {self.name} v{self.version}")
            result = self.execute_worker_logic()
            self.log('INFO', f"{result.message} ({result.execution_time_ms} ms)")
            return result
        except Exception:
            self.logger.exception(f"[{self.worker_id}] {self.name} failed")
            raise
        finally:
            self.is_running = False
            if self.lease_repository is not None:
                self.lease_repository.release(self.worker_id)
