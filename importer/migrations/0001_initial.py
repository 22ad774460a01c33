import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ImportJob",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "library_id",
                    models.UUIDField(
                        editable=False,
                        help_text="Library which the imported books will belong to",
                    ),
                ),
                (
                    "file_name",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("Processing", "Processing"),
                            ("Completed", "Completed"),
                            ("Failed", "Failed"),
                        ],
                        default="Pending",
                        max_length=20,
                    ),
                ),
                (
                    "isbns",
                    models.JSONField(
                        default=list,
                        help_text="Normalized ISBN-13s to process, in file order",
                    ),
                ),
                ("total_isbns", models.PositiveIntegerField(default=0)),
                (
                    "chunk_size",
                    models.PositiveIntegerField(
                        default=25,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("total_chunks", models.PositiveIntegerField(default=0)),
                ("processed_chunks", models.PositiveIntegerField(default=0)),
                ("success_count", models.PositiveIntegerField(default=0)),
                ("failed_count", models.PositiveIntegerField(default=0)),
                (
                    "failed_isbns",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="ISBNs which could not be resolved after every retry",
                    ),
                ),
                (
                    "max_retries",
                    models.PositiveIntegerField(
                        default=3,
                        help_text="Additional lookup attempts made for each ISBN",
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("modified", models.DateTimeField(auto_now=True)),
                (
                    "started",
                    models.DateTimeField(
                        blank=True,
                        help_text="Time when a worker started processing this job",
                        null=True,
                    ),
                ),
                (
                    "completed",
                    models.DateTimeField(
                        blank=True,
                        help_text="Time when the job completed or failed",
                        null=True,
                    ),
                ),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "task_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of the last Celery task to process this record",
                        null=True,
                    ),
                ),
                ("notification_sent", models.BooleanField(default=False)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="isbn_import_jobs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created",),
                "indexes": [
                    models.Index(
                        fields=["library_id", "status"],
                        name="importjob_library_status_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            processed_chunks__lte=models.F("total_chunks")
                        ),
                        name="importjob_processed_chunks_lte_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            success_count__lte=models.F("total_isbns")
                            - models.F("failed_count")
                        ),
                        name="importjob_item_counts_lte_total",
                    ),
                ],
            },
        ),
    ]
