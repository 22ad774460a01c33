from functools import wraps
from logging import getLogger

from importer.models import ImportJob
from importer.store import ImportJobStore

logger = getLogger(__name__)


def update_import_job_status(f):
    """
    Decorator for task functions which are passed an ImportJob.

    Records the Celery task id on the job before calling the wrapped function
    and skips jobs which have already finished. If the wrapped function raises,
    the job is marked as failed with the exception message and the exception
    is re-raised.

    Assumes that all wrapped functions get the Celery task self value as the
    first parameter and the ImportJob as the second
    """

    @wraps(f)
    def inner(self, import_job, *args, **kwargs):
        store = ImportJobStore()

        # Another worker may have finished this job since the task was queued
        guard_qs = ImportJob.objects.filter(
            pk=import_job.pk,
            status__in=ImportJob.TERMINAL_STATUSES,
        )
        if guard_qs.exists():
            logger.warning(
                "Import job %s was already finished and will not be repeated",
                import_job,
                extra={
                    "data": {"object": import_job, "args": args, "kwargs": kwargs}
                },
            )
            return

        task_id = getattr(self.request, "id", None)
        if task_id:
            store.record_task_id(import_job.pk, task_id)
            import_job.task_id = task_id

        try:
            return f(self, import_job, *args, **kwargs)
        except Exception as exc:
            store.mark_failed(import_job.pk, f"Unhandled exception: {exc}")
            raise

    return inner
