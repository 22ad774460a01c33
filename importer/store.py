"""
All writes to an ImportJob after it has been created go through
``ImportJobStore`` so that every state change happens inside a transaction
which holds the job's row lock.
"""

import math
from logging import getLogger

from django.db import transaction
from django.utils.timezone import now

from laurel.logging import LaurelLogger

from .exceptions import ImportJobStateError
from .models import ImportJob

logger = getLogger(__name__)
structured_logger = LaurelLogger.get_logger(__name__)


def chunk_count(total_isbns, chunk_size):
    return math.ceil(total_isbns / chunk_size) if total_isbns else 0


class ImportJobStore:
    def get(self, job_id):
        return ImportJob.objects.get(pk=job_id)

    def _locked(self, job_id):
        return ImportJob.objects.select_for_update().get(pk=job_id)

    def begin_processing(self, job_id, chunk_size=None):
        """
        Move a Pending job to Processing and fix its chunk count.

        Returns None without changing anything if the job has already been
        started by someone else, which makes repeated processing requests
        harmless. Repeated ISBNs are dropped, keeping the first occurrence, so
        every ISBN is counted once. A job without any ISBNs is completed
        immediately.
        """
        with transaction.atomic():
            job = self._locked(job_id)

            if job.status != ImportJob.Status.PENDING:
                logger.info(
                    "Import job %s is %s and will not be processed again",
                    job.pk,
                    job.status,
                )
                return None

            if chunk_size:
                job.chunk_size = chunk_size
            job.isbns = list(dict.fromkeys(job.isbns))
            job.total_isbns = len(job.isbns)
            job.total_chunks = chunk_count(job.total_isbns, job.chunk_size)
            job.started = now()

            if job.total_chunks:
                job.status = ImportJob.Status.PROCESSING
            else:
                job.status = ImportJob.Status.COMPLETED
                job.completed = job.started

            job.save(
                update_fields=[
                    "chunk_size",
                    "isbns",
                    "total_isbns",
                    "total_chunks",
                    "started",
                    "status",
                    "completed",
                    "modified",
                ]
            )

        structured_logger.info(
            "Import job started.",
            event_code="import_job_started",
            import_job=job,
            total_chunks=job.total_chunks,
            total_isbns=job.total_isbns,
        )
        return job

    def merge_chunk_result(self, job_id, result):
        """
        Add one chunk's tallies to the job, completing it when the last chunk
        arrives.

        Raises:
            ImportJobStateError: If the job is not Processing or the merge
                would push a counter past its total.
        """
        with transaction.atomic():
            job = self._locked(job_id)

            if job.status != ImportJob.Status.PROCESSING:
                raise ImportJobStateError(
                    f"Cannot merge chunk {result.chunk_number} into import job "
                    f"{job.pk} while it is {job.status}"
                )

            processed_chunks = job.processed_chunks + 1
            success_count = job.success_count + result.success_count
            failed_isbns = list(job.failed_isbns)
            for isbn in result.failed_isbns:
                if isbn not in failed_isbns:
                    failed_isbns.append(isbn)
            failed_count = len(failed_isbns)

            if processed_chunks > job.total_chunks:
                raise ImportJobStateError(
                    f"Import job {job.pk} has already merged all "
                    f"{job.total_chunks} chunks"
                )
            if success_count + failed_count > job.total_isbns:
                raise ImportJobStateError(
                    f"Import job {job.pk} would count {success_count + failed_count} "
                    f"results for {job.total_isbns} ISBNs"
                )

            job.processed_chunks = processed_chunks
            job.success_count = success_count
            job.failed_count = failed_count
            job.failed_isbns = failed_isbns

            update_fields = [
                "processed_chunks",
                "success_count",
                "failed_count",
                "failed_isbns",
                "modified",
            ]
            if processed_chunks == job.total_chunks:
                job.status = ImportJob.Status.COMPLETED
                job.completed = now()
                update_fields += ["status", "completed"]

            job.save(update_fields=update_fields)

        logger.debug(
            "Merged chunk %s into import job %s (%s/%s)",
            result.chunk_number,
            job.pk,
            job.processed_chunks,
            job.total_chunks,
        )
        return job

    def mark_failed(self, job_id, error_message):
        """
        Record that a job could not be completed. Tallies merged so far are
        kept. Jobs which have already finished are returned unchanged.
        """
        with transaction.atomic():
            job = self._locked(job_id)

            if job.is_terminal:
                logger.warning(
                    "Import job %s is already %s; not marking it as failed: %s",
                    job.pk,
                    job.status,
                    error_message,
                )
                return job

            job.status = ImportJob.Status.FAILED
            job.error_message = error_message or "Unknown error"
            job.completed = now()
            job.save(update_fields=["status", "error_message", "completed", "modified"])

        structured_logger.error(
            "Import job failed.",
            event_code="import_job_failed",
            reason=job.error_message,
            reason_code="orchestration_failed",
            import_job=job,
            processed_chunks=job.processed_chunks,
            total_chunks=job.total_chunks,
        )
        return job

    def record_task_id(self, job_id, task_id):
        ImportJob.objects.filter(pk=job_id).update(task_id=task_id, modified=now())

    def mark_notified(self, job_id):
        ImportJob.objects.filter(pk=job_id).update(notification_sent=True)
