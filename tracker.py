"""
Job/Session tracker.

Persists one record per job id and enforces its lifecycle: status only moves
forward through STATUS_ORDER, any status may move to `failed`, and `failed` is
terminal until the job is explicitly restarted. Artifact references are
write-once for the same reason.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import InvalidTransition, JobNotFound
from models import Job


class JobStatus:
    CREATED = "created"
    REFINING = "refining"
    SCRIPT_GENERATING = "script_generating"
    VIDEO_GENERATING = "video_generating"
    COMPLETED = "completed"
    FAILED = "failed"


STATUS_ORDER = [
    JobStatus.CREATED,
    JobStatus.REFINING,
    JobStatus.SCRIPT_GENERATING,
    JobStatus.VIDEO_GENERATING,
    JobStatus.COMPLETED,
]

TEXT_FIELDS = ("raw_prompt", "refined_prompt", "script")
ARTIFACT_FIELDS = (
    "audio_path",
    "audio_url",
    "generated_code_path",
    "silent_video_path",
    "video_path",
    "video_url",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def can_transition(current: str, new: str) -> bool:
    if current == JobStatus.FAILED:
        return False
    if new == JobStatus.FAILED:
        return True
    return STATUS_ORDER.index(new) >= STATUS_ORDER.index(current)


class JobTracker:
    """State store for job records, backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, job_id: str) -> Optional[Job]:
        return self.db.query(Job).filter(Job.id == job_id).first()

    def require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if not job:
            raise JobNotFound(f"Job {job_id} not found.")
        return job

    def _get_or_create(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            now = _utcnow()
            job = Job(id=job_id, status=JobStatus.CREATED, created_at=now, updated_at=now)
            self.db.add(job)
        return job

    def _save(self, job: Job) -> Job:
        now = _utcnow()
        job.updated_at = max(now, job.updated_at) if job.updated_at else now
        self.db.commit()
        self.db.refresh(job)
        return job

    def ensure_runnable(self, job_id: str, target_status: str) -> Optional[Job]:
        """Raises if a stage that ends in `target_status` may not run for this job."""
        job = self.get(job_id)
        if job is None:
            return None
        if job.status == JobStatus.FAILED:
            raise InvalidTransition(
                f"Job {job_id} has failed; restart it before running further stages.",
                details=job.error_message,
            )
        if not can_transition(job.status, target_status):
            raise InvalidTransition(f"Job {job_id} is already '{job.status}'; cannot go back to '{target_status}'.")
        return job

    def upsert(self, job_id: str, status: str = None, **fields) -> Job:
        unknown = set(fields) - set(TEXT_FIELDS) - set(ARTIFACT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        job = self._get_or_create(job_id)
        if job.status == JobStatus.FAILED:
            self.db.rollback()
            raise InvalidTransition(f"Job {job_id} has failed; restart it before updating it.")
        if status is not None and (status == JobStatus.FAILED or not can_transition(job.status, status)):
            self.db.rollback()
            raise InvalidTransition(f"Job {job_id} cannot move from '{job.status}' to '{status}'.")

        for field in ARTIFACT_FIELDS:
            current, new = getattr(job, field), fields.get(field)
            if current and new and current != new:
                self.db.rollback()
                raise InvalidTransition(
                    f"Job {job_id} already has {field}={current!r}; restart the job to replace it."
                )

        for field, value in fields.items():
            if value is not None:
                setattr(job, field, value)
        if status is not None:
            job.status = status
        return self._save(job)

    def fail(self, job_id: str, message: str, **artifacts) -> Job:
        """Marks the job failed, keeping any partial artifacts for diagnostics."""
        self.db.rollback()
        job = self._get_or_create(job_id)
        for field, value in artifacts.items():
            if field in ARTIFACT_FIELDS and value and not getattr(job, field):
                setattr(job, field, value)
        job.status = JobStatus.FAILED
        job.error_message = message or "Unknown error"
        logging.error(f"❌ Job {job_id} failed: {job.error_message}")
        return self._save(job)

    def restart(self, job_id: str) -> Job:
        job = self.require(job_id)
        for field in TEXT_FIELDS + ARTIFACT_FIELDS:
            setattr(job, field, "")
        job.status = JobStatus.CREATED
        job.error_message = ""
        logging.info(f"🔁 Job {job_id} restarted.")
        return self._save(job)
