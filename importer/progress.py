"""
Read-only views of ImportJob progress, for polling and for push updates
"""

import time
import uuid
from datetime import datetime
from typing import Optional

from asgiref.sync import AsyncToSync
from channels.layers import get_channel_layer

from laurel.api.schemas import CamelSchema
from laurel.logging import LaurelLogger

from .models import ImportJob

structured_logger = LaurelLogger.get_logger(__name__)

PROGRESS_GROUP_PREFIX = "import_progress"
PROGRESS_MESSAGE_TYPE = "import.progress"


class ImportProgress(CamelSchema):
    job_id: uuid.UUID
    file_name: str
    status: str
    processed_chunks: int
    total_chunks: int
    success_count: int
    failed_count: int
    total_isbns: int
    progress_percent: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @classmethod
    def from_job(cls, job: ImportJob) -> "ImportProgress":
        return cls(
            job_id=job.pk,
            file_name=job.file_name,
            status=job.status,
            processed_chunks=job.processed_chunks,
            total_chunks=job.total_chunks,
            success_count=job.success_count,
            failed_count=job.failed_count,
            total_isbns=job.total_isbns,
            progress_percent=job.progress_percent,
            created_at=job.created,
            completed_at=job.completed,
            error_message=job.error_message or None,
        )


def progress_snapshot(job: ImportJob) -> dict:
    """
    Return the JSON-ready progress of ``job`` with camelCase keys
    """
    return ImportProgress.from_job(job).model_dump(mode="json", by_alias=True)


def get_progress(job_id) -> dict:
    """
    Raises:
        ImportJob.DoesNotExist: If there is no job with this id.
    """
    return progress_snapshot(ImportJob.objects.get(pk=job_id))


def get_active_progress(context) -> list[dict]:
    """
    Return snapshots of every Pending or Processing job in the context's
    library, newest first.
    """
    jobs = ImportJob.objects.for_library(context.library_id).active()
    return [progress_snapshot(job) for job in jobs.order_by("-created")]


def get_import_history(context):
    """
    Return a queryset of every job in the context's library, finished or
    not, newest first.
    """
    return ImportJob.objects.for_library(context.library_id).order_by("-created")


def progress_group_name(job_id) -> str:
    return f"{PROGRESS_GROUP_PREFIX}_{job_id}"


class ChannelsProgressPublisher:
    """
    Broadcast progress snapshots to the websocket subscribers of a job.

    Delivery is best effort: failures are logged and never reach the
    orchestrator.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    def publish(self, job: ImportJob) -> None:
        channel_layer = self.channel_layer
        if channel_layer is None:
            return

        try:
            AsyncToSync(channel_layer.group_send)(
                progress_group_name(job.pk),
                {
                    "type": PROGRESS_MESSAGE_TYPE,
                    "job_id": str(job.pk),
                    "snapshot": progress_snapshot(job),
                    "sent": time.time(),
                },
            )
        except Exception as exc:
            structured_logger.warning(
                "Unable to broadcast import progress.",
                event_code="import_progress_broadcast_failed",
                reason=str(exc),
                reason_code="channel_layer_error",
                import_job=job,
            )
