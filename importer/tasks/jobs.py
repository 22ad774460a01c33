import os
import threading
from logging import getLogger

from celery.signals import worker_process_shutdown, worker_shutting_down
from django.conf import settings
from django.db import transaction

from configuration.utils import configuration_value
from importer.context import ImportContext
from importer.exceptions import ImportFileError
from importer.models import ImportJob
from importer.orchestrator import get_default_orchestrator
from importer.parser import parse_isbns
from laurel.celery import app
from laurel.logging import LaurelLogger

from .decorators import update_import_job_status

logger = getLogger(__name__)
structured_logger = LaurelLogger.get_logger(__name__)

# Set when the process running imports is asked to stop so that running imports
# stop scheduling new chunks and are marked as failed instead of being left in
# Processing. worker_shutting_down only fires in the main worker process, which
# runs the tasks under the solo and threads pools. Prefork children get
# worker_process_shutdown instead. A warm shutdown lets a child finish its
# current task before that fires.
worker_shutdown_event = threading.Event()


@worker_shutting_down.connect
def _stop_running_imports(sig=None, how=None, exitcode=None, **kwargs):
    logger.info("Worker shutting down (%s); cancelling running imports", sig)
    worker_shutdown_event.set()


@worker_process_shutdown.connect
def _stop_child_imports(pid=None, exitcode=None, **kwargs):
    logger.info("Worker process %s exiting; cancelling running imports", pid)
    worker_shutdown_event.set()


def get_import_limits():
    """
    Return the chunk size, retry budget and maximum identifier count for new
    imports, preferring runtime configuration over settings.
    """
    return (
        int(configuration_value("import_chunk_size", settings.IMPORTER_CHUNK_SIZE)),
        int(configuration_value("import_max_retries", settings.IMPORTER_MAX_RETRIES)),
        int(configuration_value("import_max_isbns", settings.IMPORTER_MAX_ISBNS)),
    )


def validate_import_file(uploaded_file):
    file_name = os.path.basename(uploaded_file.name or "")
    extension = os.path.splitext(file_name)[1].lower()

    if extension not in settings.IMPORTER_ALLOWED_EXTENSIONS:
        raise ImportFileError(
            "Only %s files can be imported"
            % ", ".join(settings.IMPORTER_ALLOWED_EXTENSIONS)
        )

    if not uploaded_file.size:
        raise ImportFileError(f"{file_name} is empty")

    if uploaded_file.size > settings.IMPORTER_MAX_FILE_SIZE:
        raise ImportFileError(
            "%s is larger than the %d MB limit"
            % (file_name, settings.IMPORTER_MAX_FILE_SIZE // (1024 * 1024))
        )

    return file_name


def create_import_job(context, uploaded_file):
    """
    Validate and parse an uploaded ISBN file, record a Pending ImportJob and
    queue it for processing once the surrounding transaction commits.

    Args:
        context (ImportContext): The library and user requesting the import.
        uploaded_file: A Django UploadedFile (or any File with name and size).

    Returns:
        ImportJob: The newly created job.

    Raises:
        ImportFileError: If the file is not acceptable or contains no valid
            ISBNs.
    """
    file_name = validate_import_file(uploaded_file)
    chunk_size, max_retries, max_isbns = get_import_limits()

    uploaded_file.seek(0)
    try:
        isbns = parse_isbns(uploaded_file, max_count=max_isbns)
    except UnicodeDecodeError as exc:
        raise ImportFileError(f"{file_name} is not a UTF-8 text file") from exc

    if not isbns:
        raise ImportFileError(f"No valid ISBNs were found in {file_name}")

    user = context.user
    if user is not None and not user.is_authenticated:
        user = None

    import_job = ImportJob.objects.create(
        library_id=context.library_id,
        created_by=user,
        file_name=file_name,
        isbns=isbns,
        total_isbns=len(isbns),
        chunk_size=chunk_size,
        max_retries=max_retries,
    )

    structured_logger.info(
        "Import job created.",
        event_code="import_job_created",
        import_job=import_job,
        import_context=context,
        total_isbns=import_job.total_isbns,
    )

    transaction.on_commit(lambda: process_import_job_task.delay(str(import_job.pk)))
    return import_job


@app.task(bind=True, ignore_result=True)
def process_import_job_task(self, import_job_pk):
    try:
        import_job = ImportJob.objects.select_related("created_by").get(
            pk=import_job_pk
        )
    except ImportJob.DoesNotExist:
        logger.exception(
            "ImportJob %s could not be found while attempting to process it",
            import_job_pk,
        )
        raise

    return process_import_job(self, import_job)


@update_import_job_status
def process_import_job(self, import_job):
    get_default_orchestrator().process(
        import_job.pk,
        context=ImportContext.for_job(import_job),
        cancel_event=worker_shutdown_event,
    )
