import logging

from celery import current_task


class CeleryTaskFilter(logging.Filter):
    """
    Add the current Celery task's name and id to log records, formatted so
    that they can be dropped straight into a format string. Records logged
    outside a task get empty strings.
    """

    def filter(self, record):
        task = current_task
        if task and task.request.id:
            record.task_id = f"/[{task.request.id}]"
            record.task_name = f" {task.name}"
        else:
            record.task_id = ""
            record.task_name = ""
        # This just tells the logger to not discard this record
        return True
