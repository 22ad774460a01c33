import uuid

from django.http import HttpRequest
from ninja import File, Form, Router
from ninja.errors import HttpError
from ninja.files import UploadedFile
from ninja.pagination import PageNumberPagination, paginate

from laurel.logging import LaurelLogger

from .context import ImportContext
from .exceptions import ImportFileError
from .models import ImportJob
from .progress import (
    ImportProgress,
    get_active_progress,
    get_import_history,
    get_progress,
    progress_snapshot,
)
from .tasks.jobs import create_import_job

structured_logger = LaurelLogger.get_logger(__name__)

router = Router(tags=["imports"])

IMPORT_HISTORY_PAGE_SIZE = 20


class ImportHistoryPagination(PageNumberPagination):
    """
    Page through ImportJob rows, handing back progress snapshots rather than
    the rows themselves
    """

    def paginate_queryset(self, queryset, pagination, **params):
        page = super().paginate_queryset(queryset, pagination, **params)
        page["items"] = [progress_snapshot(job) for job in page["items"]]
        return page


@router.post("/", response={201: ImportProgress}, by_alias=True)
def create_import(
    request: HttpRequest,
    library_id: uuid.UUID = Form(...),
    file: UploadedFile = File(...),  # noqa: A002
):
    """
    Upload a delimited file of ISBNs and queue it for import
    """
    context = ImportContext(library_id=library_id, user=request.user)

    try:
        import_job = create_import_job(context, file)
    except ImportFileError as exc:
        structured_logger.warning(
            "Rejected ISBN import file.",
            event_code="import_file_rejected",
            reason=str(exc),
            reason_code="invalid_file",
            import_context=context,
            file_name=file.name,
        )
        raise HttpError(400, str(exc)) from exc

    return 201, ImportProgress.from_job(import_job)


@router.get("/", response=list[ImportProgress], by_alias=True)
@paginate(ImportHistoryPagination, page_size=IMPORT_HISTORY_PAGE_SIZE)
def import_history(request: HttpRequest, library_id: uuid.UUID):
    """
    Every import the library has run, newest first, whatever its status
    """
    return get_import_history(
        ImportContext(library_id=library_id, user=request.user)
    )


@router.get("/active", response=list[ImportProgress], by_alias=True)
def active_imports(request: HttpRequest, library_id: uuid.UUID):
    """
    Progress of every import in the library which has not finished yet
    """
    return get_active_progress(ImportContext(library_id=library_id, user=request.user))


@router.get("/{job_id}/progress", response=ImportProgress, by_alias=True)
def import_progress(request: HttpRequest, job_id: uuid.UUID):
    try:
        return get_progress(job_id)
    except ImportJob.DoesNotExist as exc:
        raise HttpError(404, "Import job not found") from exc
