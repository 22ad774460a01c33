"""
See the module-level docstring for implementation details
"""

import uuid
from logging import getLogger

from django.core.validators import MinValueValidator
from django.db import models

logger = getLogger(__name__)


class ImportJobQuerySet(models.QuerySet):
    def active(self):
        return self.filter(
            status__in=(ImportJob.Status.PENDING, ImportJob.Status.PROCESSING)
        )

    def for_library(self, library_id):
        return self.filter(library_id=library_id)


class ImportJob(models.Model):
    """
    Represents a request by a user to import the ISBNs listed in an uploaded
    file into one library.

    After creation the record is only changed by the orchestrator through
    ``importer.store.ImportJobStore`` so that concurrent chunk results are
    always merged under a row lock.
    """

    class Status(models.TextChoices):
        PENDING = "Pending"
        PROCESSING = "Processing"
        COMPLETED = "Completed"
        FAILED = "Failed"

    TERMINAL_STATUSES = (Status.COMPLETED, Status.FAILED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    library_id = models.UUIDField(
        help_text="Library which the imported books will belong to", editable=False
    )

    created_by = models.ForeignKey(
        "auth.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="isbn_import_jobs",
    )

    file_name = models.CharField(max_length=255, blank=True, default="")

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING
    )

    isbns = models.JSONField(
        help_text="Normalized ISBN-13s to process, in file order", default=list
    )
    total_isbns = models.PositiveIntegerField(default=0)

    chunk_size = models.PositiveIntegerField(
        default=25, validators=[MinValueValidator(1)]
    )
    total_chunks = models.PositiveIntegerField(default=0)
    processed_chunks = models.PositiveIntegerField(default=0)

    success_count = models.PositiveIntegerField(default=0)
    failed_count = models.PositiveIntegerField(default=0)
    failed_isbns = models.JSONField(
        help_text="ISBNs which could not be resolved after every retry",
        default=list,
        blank=True,
    )

    max_retries = models.PositiveIntegerField(
        help_text="Additional lookup attempts made for each ISBN", default=3
    )

    created = models.DateTimeField(auto_now_add=True)
    modified = models.DateTimeField(auto_now=True)
    started = models.DateTimeField(
        help_text="Time when a worker started processing this job",
        null=True,
        blank=True,
    )
    completed = models.DateTimeField(
        help_text="Time when the job completed or failed", null=True, blank=True
    )

    error_message = models.TextField(blank=True, default="")

    task_id = models.UUIDField(
        help_text="UUID of the last Celery task to process this record",
        null=True,
        blank=True,
    )

    notification_sent = models.BooleanField(default=False)

    objects = ImportJobQuerySet.as_manager()

    class Meta:
        ordering = ("-created",)
        indexes = [
            models.Index(
                fields=["library_id", "status"], name="importjob_library_status_idx"
            )
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(processed_chunks__lte=models.F("total_chunks")),
                name="importjob_processed_chunks_lte_total",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    success_count__lte=models.F("total_isbns") - models.F("failed_count")
                ),
                name="importjob_item_counts_lte_total",
            ),
        ]

    def __str__(self):
        return "ImportJob(library_id=%s, file_name=%s, status=%s)" % (
            self.library_id,
            self.file_name,
            self.status,
        )

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def progress_percent(self):
        if not self.total_chunks:
            return 0
        return self.processed_chunks * 100 // self.total_chunks
