from logging import getLogger

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import loader

from laurel.logging import LaurelLogger

logger = getLogger(__name__)
structured_logger = LaurelLogger.get_logger(__name__)


class EmailCompletionNotifier:
    """
    Email the user who requested an import a summary once it has completed.

    ``notify`` returns False when there is nobody to email. It raises whatever
    the mail backend raises. Either way the orchestrator leaves
    ``notification_sent`` unset.
    """

    subject_template_name = "emails/isbn_import_completed_subject.txt"
    text_body_template_name = "emails/isbn_import_completed_body.txt"
    html_body_template_name = "emails/isbn_import_completed_body.html"

    def get_recipient(self, job):
        user = job.created_by
        if user is None or not user.email:
            return None
        return user.email

    def get_context(self, job):
        user = job.created_by
        return {
            "job": job,
            "user_name": user.get_full_name() or user.get_username(),
            "file_name": job.file_name,
            "total_isbns": job.total_isbns,
            "success_count": job.success_count,
            "failed_count": job.failed_count,
            "failed_isbns": job.failed_isbns,
            "completed": job.completed,
        }

    def notify(self, job):
        recipient = self.get_recipient(job)
        if recipient is None:
            structured_logger.info(
                "Import completed without a notification recipient.",
                event_code="import_notification_skipped",
                import_job=job,
            )
            return False

        context = self.get_context(job)

        subject_message = loader.get_template(self.subject_template_name).render(
            context
        )
        text_body_message = loader.get_template(self.text_body_template_name).render(
            context
        )
        html_body_message = loader.get_template(self.html_body_template_name).render(
            context
        )

        message = EmailMultiAlternatives(
            subject=" ".join(subject_message.split()),
            body=text_body_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient],
            reply_to=[settings.DEFAULT_FROM_EMAIL],
        )
        message.attach_alternative(html_body_message, "text/html")
        message.send()

        logger.info("Sent import completion email for %s to %s", job.pk, recipient)
        structured_logger.info(
            "Import completion email sent.",
            event_code="import_notification_sent",
            import_job=job,
            user=job.created_by,
        )
        return True
