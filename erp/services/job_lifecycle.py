"""
Lifecycle of export and print jobs.

Jobs are plain rows; these functions move them through
PENDING -> PROCESSING -> COMPLETED / FAILED / CANCELLED and answer whether
the produced file may still be downloaded. They work on either job model.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from erp.models.export import ExportJob, PrintJob, JobStatus
from erp.services.state_machine import JOB_TRANSITIONS, validate_transition

Job = Union[ExportJob, PrintJob]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite round-trips) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def mark_started(job: Job, total_records: int = 0, now: Optional[datetime] = None) -> None:
    validate_transition(JOB_TRANSITIONS, job.status, JobStatus.PROCESSING, "Job")
    job.status = JobStatus.PROCESSING.value
    job.started_at = now or utcnow()
    if hasattr(job, "total_records"):
        job.total_records = total_records
        job.processed_records = 0
    if hasattr(job, "progress"):
        job.progress = 0


def update_progress(job: ExportJob, processed_records: int) -> None:
    """Record processed rows; progress is a whole percentage capped at 100."""
    job.processed_records = processed_records
    if job.total_records:
        job.progress = min(100, int(processed_records * 100 / job.total_records))
    else:
        job.progress = 100


def mark_completed(
    job: Job,
    file_path: str,
    file_name: str,
    file_size: int,
    expires_in: timedelta,
    now: Optional[datetime] = None,
) -> None:
    validate_transition(JOB_TRANSITIONS, job.status, JobStatus.COMPLETED, "Job")
    now = now or utcnow()
    job.status = JobStatus.COMPLETED.value
    job.file_path = file_path
    job.file_name = file_name
    job.file_size = file_size
    job.completed_at = now
    job.expires_at = now + expires_in
    if hasattr(job, "progress"):
        job.progress = 100


def mark_failed(job: Job, error: str, now: Optional[datetime] = None) -> None:
    validate_transition(JOB_TRANSITIONS, job.status, JobStatus.FAILED, "Job")
    job.status = JobStatus.FAILED.value
    job.error_message = error
    job.completed_at = now or utcnow()


def mark_cancelled(job: Job, now: Optional[datetime] = None) -> None:
    validate_transition(JOB_TRANSITIONS, job.status, JobStatus.CANCELLED, "Job")
    job.status = JobStatus.CANCELLED.value
    job.completed_at = now or utcnow()


def is_expired(job: Job, now: Optional[datetime] = None) -> bool:
    expires_at = as_aware(job.expires_at)
    return expires_at is not None and (now or utcnow()) >= expires_at


def is_downloadable(job: Job, now: Optional[datetime] = None, check_file: bool = True) -> bool:
    """COMPLETED, not expired, and the file is still on disk."""
    if job.status != JobStatus.COMPLETED.value or not job.file_path:
        return False
    if is_expired(job, now):
        return False
    return os.path.exists(job.file_path) if check_file else True


def is_active(job: Job) -> bool:
    return job.status in (JobStatus.PENDING.value, JobStatus.PROCESSING.value)
