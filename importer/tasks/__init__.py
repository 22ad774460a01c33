"""
Celery tasks for the importer. Every module in this package is imported when
the Celery app is finalized.
"""

from .jobs import create_import_job, process_import_job_task

__all__ = ["create_import_job", "process_import_job_task"]
