from django.core import mail
from django.test import TestCase
from django.utils import timezone

from importer.models import ImportJob
from importer.notifications import EmailCompletionNotifier

from .utils import create_import_job_record, create_test_user, make_isbns


class EmailCompletionNotifierTests(TestCase):
    def setUp(self):
        self.notifier = EmailCompletionNotifier()
        self.isbns = make_isbns(4)

    def create_completed_job(self, **kwargs):
        return create_import_job_record(
            isbns=self.isbns,
            status=ImportJob.Status.COMPLETED,
            total_chunks=1,
            processed_chunks=1,
            success_count=3,
            failed_count=1,
            failed_isbns=[self.isbns[2]],
            completed=timezone.now(),
            **kwargs,
        )

    def test_notify(self):
        user = create_test_user(first_name="Ada", last_name="Lovelace")
        import_job = self.create_completed_job(created_by=user)

        self.assertTrue(self.notifier.notify(import_job))

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, [user.email])
        self.assertEqual(
            message.subject, "Your book import from books.csv is complete"
        )
        self.assertIn(self.isbns[2], message.body)
        self.assertIn("Imported: 3", message.body)
        html, mimetype = message.alternatives[0]
        self.assertEqual(mimetype, "text/html")
        self.assertIn(self.isbns[2], html)

    def test_get_context(self):
        user = create_test_user(first_name="", last_name="")
        import_job = self.create_completed_job(created_by=user)

        context = self.notifier.get_context(import_job)

        self.assertEqual(context["user_name"], user.username)
        self.assertEqual(context["success_count"], 3)
        self.assertEqual(context["failed_isbns"], [self.isbns[2]])

    def test_no_recipient(self):
        import_job = self.create_completed_job()

        self.assertFalse(self.notifier.notify(import_job))
        self.assertEqual(len(mail.outbox), 0)

    def test_user_without_email(self):
        user = create_test_user(email="")
        import_job = self.create_completed_job(created_by=user)

        self.assertIsNone(self.notifier.get_recipient(import_job))
        self.assertFalse(self.notifier.notify(import_job))
        self.assertEqual(len(mail.outbox), 0)
