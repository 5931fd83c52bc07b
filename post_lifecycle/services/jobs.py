"""
Background job queue used by the lifecycle.

Jobs are fire-and-forget. DatabaseJobQueue writes an outbox row through the
caller's session, so the job commits (or rolls back) together with the post
mutation that triggered it and a worker never sees a job for a change that
did not happen.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from post_lifecycle.models import JobStatus, QueuedJob

logger = logging.getLogger(__name__)

FEATURE_TOPIC_USERS = "feature_topic_users"


class JobQueue(ABC):
    """Abstract job queue. Consumers assume at-least-once delivery."""

    @abstractmethod
    def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        pass


class DatabaseJobQueue(JobQueue):
    """Transactional outbox backed by the queued_jobs table."""

    def __init__(self, db: Session):
        self.db = db

    def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        self.db.add(QueuedJob(job_name=job_name, payload=payload, status=JobStatus.PENDING.value))
        logger.debug(f"Enqueued {job_name} {payload}", extra={"event": "job_enqueued", "job_name": job_name})

    def pending(self, job_name: str | None = None) -> list[QueuedJob]:
        query = self.db.query(QueuedJob).filter(QueuedJob.status == JobStatus.PENDING.value)
        if job_name:
            query = query.filter(QueuedJob.job_name == job_name)
        return query.order_by(QueuedJob.id).all()


class InMemoryJobQueue(JobQueue):
    """
    Hands jobs to a list once the session commits.

    Jobs enqueued during a transaction are held back until it commits and are
    dropped if it rolls back, so callers that dispatch jobs themselves only
    see jobs for changes that happened.
    """

    def __init__(self, db: Session):
        self.db = db
        self.jobs: list[tuple[str, dict[str, Any]]] = []
        self._pending: list[tuple[str, dict[str, Any]]] = []
        event.listen(db, "after_commit", self._publish)
        event.listen(db, "after_soft_rollback", self._discard)

    def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        self._pending.append((job_name, payload))

    def close(self) -> None:
        """Stop listening to the session."""
        event.remove(self.db, "after_commit", self._publish)
        event.remove(self.db, "after_soft_rollback", self._discard)

    def _publish(self, session) -> None:
        self.jobs.extend(self._pending)
        self._pending.clear()

    def _discard(self, session, previous_transaction) -> None:
        # Savepoint rollbacks leave the outer transaction's jobs alone
        if previous_transaction.parent is not None:
            return
        if self._pending:
            logger.debug(f"Dropped {len(self._pending)} jobs on rollback", extra={"event": "jobs_discarded"})
        self._pending.clear()
