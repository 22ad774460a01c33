"""
Chunked, concurrent processing of an ImportJob

The orchestrator owns a fixed thread pool which is shared by every job it
drives. Worker threads only perform lookups and return a ChunkResult; the
thread which called ``process`` consumes the chunk futures as they finish and
merges each result through the job store. All database writes for a job
therefore happen on one thread, and merges from different processes are
serialized by the row lock the store takes.
"""

import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import lru_cache
from logging import getLogger

from django.conf import settings

from laurel.logging import LaurelLogger

from .exceptions import ImportJobStateError, MetadataLookupError, OrchestrationError
from .models import ImportJob
from .store import ImportJobStore

logger = getLogger(__name__)
structured_logger = LaurelLogger.get_logger(__name__)

# Seconds between checks of the cancel event while waiting for chunks
CANCEL_POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class ImportChunk:
    number: int
    isbns: tuple
    job_id: object = None
    library_id: object = None


@dataclass
class ChunkResult:
    chunk_number: int
    success_count: int = 0
    failed_isbns: list = field(default_factory=list)

    @property
    def failed_count(self):
        return len(self.failed_isbns)

    @property
    def total(self):
        return self.success_count + self.failed_count


def split_into_chunks(isbns, chunk_size, *, job_id=None, library_id=None):
    """
    Split ``isbns`` into consecutive chunks of at most ``chunk_size`` items,
    numbered from 1, without reordering or dropping anything.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be a positive integer")

    isbns = list(isbns)
    return [
        ImportChunk(
            number=number,
            isbns=tuple(isbns[start : start + chunk_size]),
            job_id=job_id,
            library_id=library_id,
        )
        for number, start in enumerate(range(0, len(isbns), chunk_size), start=1)
    ]


class ImportOrchestrator:
    """
    Drives ImportJobs from Pending to Completed or Failed.

    Collaborators:
        lookup: object with ``lookup(isbn)`` returning metadata. Returning
            None or raising counts as a failed attempt.
        store: ImportJobStore used for every write to the job.
        notifier: object with ``notify(job)`` called once a job completes.
        publisher: object with ``publish(job)`` called after every change.
        catalog: callable ``(library_id, isbn, metadata)`` which stores the
            resolved metadata. Its errors count as failed attempts.
    """

    def __init__(
        self,
        lookup,
        store=None,
        notifier=None,
        publisher=None,
        catalog=None,
        chunk_size=None,
        max_workers=None,
        retry_delay=None,
        chunk_timeout=None,
        executor=None,
    ):
        self.lookup = lookup
        self.store = store or ImportJobStore()
        self.notifier = notifier
        self.publisher = publisher
        self.catalog = catalog
        self.chunk_size = chunk_size
        self.retry_delay = (
            settings.IMPORTER_RETRY_DELAY if retry_delay is None else retry_delay
        )
        self.chunk_timeout = (
            settings.IMPORTER_CHUNK_TIMEOUT if chunk_timeout is None else chunk_timeout
        )
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or settings.IMPORTER_MAX_WORKERS,
            thread_name_prefix="isbn-import",
        )

    def shutdown(self, wait=True):
        if self._owns_executor:
            self.executor.shutdown(wait=wait, cancel_futures=True)

    def process(self, job_id, context=None, cancel_event=None):
        """
        Process every chunk of a Pending job.

        Returns the job in its final state, or None if the job had already
        been started so nothing was done. Orchestration failures mark the job
        as Failed and the failed job is returned. Any other exception also
        marks the job as Failed and is then re-raised.
        """
        job = self.store.begin_processing(job_id, self.chunk_size)
        if job is None:
            return None

        log = structured_logger.bind(import_job=job)
        if context is not None:
            log = log.bind(import_context=context)

        try:
            if job.status == ImportJob.Status.PROCESSING:
                self._publish(job)
                job = self._run(job, cancel_event)
        except OrchestrationError as exc:
            return self._fail(job, exc, log)
        except Exception as exc:
            self._fail(job, exc, log)
            raise

        log.info(
            "Import job completed.",
            event_code="import_job_completed",
            import_job=job,
            success_count=job.success_count,
            failed_count=job.failed_count,
        )
        self._publish(job)
        self._notify(job, log)
        return job

    def _run(self, job, cancel_event):
        chunks = split_into_chunks(
            job.isbns, job.chunk_size, job_id=job.pk, library_id=job.library_id
        )
        pending = {}

        try:
            for chunk in chunks:
                if cancel_event is not None and cancel_event.is_set():
                    break
                try:
                    future = self.executor.submit(
                        self.process_chunk, chunk, job.max_retries
                    )
                except RuntimeError as exc:
                    raise OrchestrationError(
                        f"The worker pool refused chunk {chunk.number}: {exc}"
                    ) from exc
                pending[future] = chunk

            deadline = time.monotonic() + self.chunk_timeout

            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    # Chunks which are already running are allowed to finish
                    for future in [f for f in pending if f.cancel()]:
                        del pending[future]
                    if not pending:
                        break

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise OrchestrationError(
                        f"Timed out after {self.chunk_timeout} seconds waiting for "
                        f"{len(pending)} of {len(chunks)} chunks"
                    )

                if cancel_event is not None:
                    remaining = min(remaining, CANCEL_POLL_INTERVAL)

                done, __ = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    chunk = pending.pop(future)
                    try:
                        result = future.result()
                    except Exception as exc:
                        raise OrchestrationError(
                            f"Chunk {chunk.number} failed: {exc}"
                        ) from exc

                    job = self.store.merge_chunk_result(job.pk, result)
                    self._publish(job)
        except BaseException:
            self._cancel(pending)
            raise

        if job.status != ImportJob.Status.COMPLETED:
            if cancel_event is not None and cancel_event.is_set():
                raise OrchestrationError(
                    f"Import was cancelled after {job.processed_chunks} of "
                    f"{job.total_chunks} chunks"
                )
            raise ImportJobStateError(
                f"Every chunk was merged but import job {job.pk} is {job.status}"
            )

        return job

    def process_chunk(self, chunk, max_retries):
        """
        Resolve every ISBN in ``chunk``, retrying each one up to
        ``max_retries`` more times before counting it as failed.
        """
        result = ChunkResult(chunk_number=chunk.number)

        for isbn in chunk.isbns:
            if self.resolve(chunk, isbn, max_retries):
                result.success_count += 1
            else:
                result.failed_isbns.append(isbn)

        logger.debug(
            "Chunk %s of import job %s finished: %s succeeded, %s failed",
            chunk.number,
            chunk.job_id,
            result.success_count,
            result.failed_count,
        )
        return result

    def resolve(self, chunk, isbn, max_retries):
        attempts = max_retries + 1
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                metadata = self.lookup.lookup(isbn)
                if metadata is None:
                    raise MetadataLookupError(isbn, f"No record found for {isbn}")
                if self.catalog is not None:
                    self.catalog(chunk.library_id, isbn, metadata)
                return True
            except Exception as exc:
                last_error = exc
                logger.debug(
                    "Attempt %d of %d for %s failed: %s", attempt, attempts, isbn, exc
                )
                if attempt < attempts and self.retry_delay:
                    time.sleep(self.retry_delay * attempt)

        structured_logger.warning(
            "ISBN lookup exhausted its retries.",
            event_code="import_isbn_failed",
            reason=str(last_error) or last_error.__class__.__name__,
            reason_code="retries_exhausted",
            chunk=chunk,
            import_job_id=str(chunk.job_id) if chunk.job_id else None,
            isbn=isbn,
            attempts=attempts,
        )
        return False

    def _cancel(self, futures):
        for future in futures:
            future.cancel()

    def _fail(self, job, exc, log):
        message = str(exc) or exc.__class__.__name__
        log.exception(
            "Import job could not be completed.",
            event_code="import_job_orchestration_failed",
            reason=message,
            reason_code=exc.__class__.__name__,
        )
        job = self.store.mark_failed(job.pk, message)
        self._publish(job)
        return job

    def _publish(self, job):
        if self.publisher is None:
            return
        try:
            self.publisher.publish(job)
        except Exception as exc:
            structured_logger.warning(
                "Unable to publish import progress.",
                event_code="import_progress_publish_failed",
                reason=str(exc),
                reason_code="publish_failed",
                import_job=job,
            )

    def _notify(self, job, log):
        if self.notifier is None:
            return
        try:
            sent = self.notifier.notify(job)
        except Exception as exc:
            log.error(
                "Unable to send the import completion notification.",
                event_code="import_notification_failed",
                reason=str(exc),
                reason_code="notification_failed",
            )
            return
        if not sent:
            return
        self.store.mark_notified(job.pk)
        job.notification_sent = True


@lru_cache(maxsize=1)
def get_default_orchestrator():
    """
    Return the process-wide orchestrator wired to the production
    collaborators. Its worker pool is shared by every job in the process.
    """
    from .lookup import IsbnDbLookup
    from .notifications import EmailCompletionNotifier
    from .progress import ChannelsProgressPublisher

    return ImportOrchestrator(
        lookup=IsbnDbLookup(),
        notifier=EmailCompletionNotifier(),
        publisher=ChannelsProgressPublisher(),
    )
