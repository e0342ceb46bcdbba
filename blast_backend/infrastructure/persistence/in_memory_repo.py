import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Dict, List, Optional

from blast_backend import config
from blast_backend.domain.models import Job, JobStatus

logger = logging.getLogger(__name__)


class InMemoryJobStore:
    """
    Bounded in-memory job store with least-recently-used eviction.

    Entries are kept in access order (oldest first), so the head of the
    OrderedDict is always the entry with the oldest ``last_accessed``.
    Jobs are lost on restart.
    """

    def __init__(self, max_size: int = config.JOB_STORE_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._lock = Lock()

    def _touch(self, job_id: str, job: Job) -> None:
        job.last_accessed = time.time()
        self._jobs.move_to_end(job_id)

    def put(self, job_id: str, job: Job) -> None:
        with self._lock:
            if job_id not in self._jobs and len(self._jobs) >= self.max_size:
                evicted_id, _ = self._jobs.popitem(last=False)
                logger.info("Job store full (%d), evicted least recently used job %s", self.max_size, evicted_id)
            self._jobs[job_id] = job
            self._touch(job_id, job)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                self._touch(job_id, job)
            return job

    def update(self, job_id: str, **changes) -> Optional[Job]:
        """
        Apply field changes to a stored job. Evicted jobs are not recreated.

        Routes read jobs outside the lock, so ``status`` is written after the
        other fields: a job seen as completed already carries its results.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            status = changes.pop("status", None)
            for name, value in changes.items():
                setattr(job, name, value)
            if status is not None:
                job.status = status
            self._touch(job_id, job)
            return job

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def sweep_older_than(self, max_age: float, now: Optional[float] = None) -> int:
        """Remove jobs started more than ``max_age`` seconds ago."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if now - job.start_time > max_age]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info("Swept %d jobs older than %.0fs", len(expired), max_age)
        return len(expired)

    def values(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def stats(self) -> Dict[str, object]:
        with self._lock:
            by_status = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                by_status[job.status.value] += 1
            return {"total": len(self._jobs), "by_status": by_status, "max_size": self.max_size}

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
