"""Export/print job lifecycle and download eligibility."""

from datetime import datetime, timedelta, timezone
import uuid

import pytest

from erp.core.exceptions import BadRequestError
from erp.models.export import ExportFormat, ExportJob, JobStatus, PrintJob
from erp.services.job_lifecycle import (
    as_aware,
    is_active,
    is_downloadable,
    is_expired,
    mark_cancelled,
    mark_completed,
    mark_failed,
    mark_started,
    update_progress,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def export_job():
    return ExportJob(
        format=ExportFormat.CSV.value,
        status=JobStatus.PENDING.value,
        total_records=0,
        processed_records=0,
        progress=0,
        requested_by=uuid.uuid4(),
    )


def test_progress(export_job):
    mark_started(export_job, total_records=8, now=NOW)
    assert export_job.status == JobStatus.PROCESSING.value
    assert export_job.started_at == NOW

    update_progress(export_job, 3)
    assert export_job.progress == 37
    update_progress(export_job, 8)
    assert export_job.progress == 100


def test_progress_with_no_rows(export_job):
    mark_started(export_job, total_records=0, now=NOW)
    update_progress(export_job, 0)
    assert export_job.progress == 100


def test_completed_job_downloadable_until_expiry(export_job, tmp_path):
    output = tmp_path / "invoices.csv"
    output.write_text("a,b\n")

    mark_started(export_job, now=NOW)
    mark_completed(export_job, str(output), "invoices.csv", 4, timedelta(hours=24), now=NOW)

    assert export_job.expires_at == NOW + timedelta(hours=24)
    assert is_downloadable(export_job, now=NOW + timedelta(hours=1))
    assert not is_downloadable(export_job, now=NOW + timedelta(hours=24))
    assert is_expired(export_job, now=NOW + timedelta(hours=25))


def test_missing_file_is_not_downloadable(export_job, tmp_path):
    mark_started(export_job, now=NOW)
    mark_completed(export_job, str(tmp_path / "gone.csv"), "gone.csv", 0, timedelta(hours=1), now=NOW)

    assert not is_downloadable(export_job, now=NOW)
    assert is_downloadable(export_job, now=NOW, check_file=False)


def test_failed_job(export_job):
    mark_started(export_job, now=NOW)
    mark_failed(export_job, "boom", now=NOW)
    assert export_job.status == JobStatus.FAILED.value
    assert export_job.error_message == "boom"
    assert not is_active(export_job)
    assert not is_downloadable(export_job, now=NOW, check_file=False)


def test_cancel_only_while_active():
    job = PrintJob(
        entity_type="INVOICE",
        entity_ids=[],
        status=JobStatus.PENDING.value,
        requested_by=uuid.uuid4(),
    )
    assert is_active(job)
    mark_cancelled(job, now=NOW)
    assert job.status == JobStatus.CANCELLED.value
    with pytest.raises(BadRequestError):
        mark_cancelled(job, now=NOW)


def test_naive_timestamps_are_utc():
    naive = datetime(2025, 1, 1, 8, 0)
    assert as_aware(naive).tzinfo is timezone.utc
    assert as_aware(None) is None


@pytest.mark.parametrize("finish", [None, "failed"])
def test_unfinished_or_failed_job_is_not_downloadable(export_job, tmp_path, finish):
    output = tmp_path / "partial.csv"
    output.write_text("a,b\n")
    mark_started(export_job, total_records=5, now=NOW)
    export_job.file_path = str(output)
    if finish == "failed":
        mark_failed(export_job, "writer crashed", now=NOW)

    assert not is_downloadable(export_job, now=NOW)
    assert not is_downloadable(export_job, now=NOW, check_file=False)
