import uuid
from unittest import mock

from celery.signals import worker_process_shutdown, worker_shutting_down
from django.contrib.auth.models import AnonymousUser
from django.core.cache import caches
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings

from configuration.models import Configuration
from importer.context import ImportContext
from importer.exceptions import ImportFileError
from importer.models import ImportJob
from importer.orchestrator import ImportOrchestrator
from importer.tasks.jobs import (
    create_import_job,
    get_import_limits,
    process_import_job_task,
    worker_shutdown_event,
)

from .utils import (
    FakeLookup,
    create_import_job_record,
    create_test_user,
    make_isbns,
)

CSV_CONTENT = (
    b"Title,ISBN\n"
    b"Introduction to Algorithms,0-262-03384-8\n"
    b"Physics,0306406152\n"
    b"Compilers,978-0-321-48681-3\n"
)


class CreateImportJobTests(TestCase):
    def setUp(self):
        caches["configuration_cache"].clear()
        self.addCleanup(caches["configuration_cache"].clear)
        self.user = create_test_user()
        self.context = ImportContext(library_id=uuid.uuid4(), user=self.user)

    @mock.patch("importer.tasks.jobs.process_import_job_task.delay")
    def test_create_import_job(self, mock_delay):
        upload = SimpleUploadedFile("books.csv", CSV_CONTENT)

        with self.captureOnCommitCallbacks(execute=True):
            import_job = create_import_job(self.context, upload)

        self.assertEqual(import_job.status, ImportJob.Status.PENDING)
        self.assertEqual(import_job.library_id, self.context.library_id)
        self.assertEqual(import_job.created_by, self.user)
        self.assertEqual(import_job.file_name, "books.csv")
        self.assertEqual(
            import_job.isbns, ["9780262033848", "9780306406157", "9780321486813"]
        )
        self.assertEqual(import_job.total_isbns, 3)
        self.assertEqual(import_job.chunk_size, 25)
        self.assertEqual(import_job.max_retries, 3)
        mock_delay.assert_called_once_with(str(import_job.pk))

    @mock.patch("importer.tasks.jobs.process_import_job_task.delay")
    def test_anonymous_user_is_not_recorded(self, mock_delay):
        context = ImportContext(library_id=uuid.uuid4(), user=AnonymousUser())

        import_job = create_import_job(
            context, SimpleUploadedFile("books.txt", CSV_CONTENT)
        )

        self.assertIsNone(import_job.created_by)

    def test_unsupported_extension(self):
        with self.assertRaisesRegex(ImportFileError, "Only .csv, .tsv, .txt"):
            create_import_job(
                self.context, SimpleUploadedFile("books.xlsx", CSV_CONTENT)
            )
        self.assertFalse(ImportJob.objects.exists())

    def test_empty_file(self):
        with self.assertRaisesRegex(ImportFileError, "is empty"):
            create_import_job(self.context, SimpleUploadedFile("books.csv", b""))

    @override_settings(IMPORTER_MAX_FILE_SIZE=16)
    def test_file_too_large(self):
        with self.assertRaisesRegex(ImportFileError, "larger than"):
            create_import_job(
                self.context, SimpleUploadedFile("books.csv", CSV_CONTENT)
            )

    def test_no_valid_isbns(self):
        upload = SimpleUploadedFile("books.csv", b"Title,ISBN\nUnknown,12345\n")
        with self.assertRaisesRegex(ImportFileError, "No valid ISBNs"):
            create_import_job(self.context, upload)
        self.assertFalse(ImportJob.objects.exists())

    def test_not_utf8(self):
        upload = SimpleUploadedFile("books.csv", b"ISBN\n\xff\xfe\x00\x01\n")
        with self.assertRaisesRegex(ImportFileError, "not a UTF-8 text file"):
            create_import_job(self.context, upload)

    @mock.patch("importer.tasks.jobs.process_import_job_task.delay")
    def test_configuration_overrides_settings(self, mock_delay):
        for key, value in (
            ("import_chunk_size", "5"),
            ("import_max_retries", "1"),
            ("import_max_isbns", "2"),
        ):
            Configuration.objects.create(
                key=key, value=value, data_type=Configuration.DataType.NUMBER
            )

        self.assertEqual(get_import_limits(), (5, 1, 2))

        import_job = create_import_job(
            self.context, SimpleUploadedFile("books.csv", CSV_CONTENT)
        )

        self.assertEqual(import_job.chunk_size, 5)
        self.assertEqual(import_job.max_retries, 1)
        self.assertEqual(import_job.isbns, ["9780262033848", "9780306406157"])


class ProcessImportJobTaskTests(TestCase):
    def setUp(self):
        self.orchestrator = ImportOrchestrator(
            FakeLookup(),
            notifier=mock.MagicMock(),
            publisher=mock.MagicMock(),
            retry_delay=0,
            max_workers=2,
        )
        self.addCleanup(self.orchestrator.shutdown)
        patcher = mock.patch(
            "importer.tasks.jobs.get_default_orchestrator",
            return_value=self.orchestrator,
        )
        self.mock_get_orchestrator = patcher.start()
        self.addCleanup(patcher.stop)

    def test_process_import_job_task(self):
        import_job = create_import_job_record(isbns=make_isbns(30))

        result = process_import_job_task.apply(args=[str(import_job.pk)])

        self.assertTrue(result.successful())
        import_job.refresh_from_db()
        self.assertEqual(import_job.status, ImportJob.Status.COMPLETED)
        self.assertEqual(import_job.total_chunks, 2)
        self.assertEqual(import_job.success_count, 30)
        self.assertEqual(str(import_job.task_id), result.id)

    def test_missing_job(self):
        with self.assertRaises(ImportJob.DoesNotExist):
            process_import_job_task(str(uuid.uuid4()))

    def test_passes_context_and_cancel_event(self):
        user = create_test_user()
        import_job = create_import_job_record(created_by=user)

        with mock.patch.object(self.orchestrator, "process") as mock_process:
            process_import_job_task(str(import_job.pk))

        mock_process.assert_called_once_with(
            import_job.pk,
            context=ImportContext(library_id=import_job.library_id, user=user),
            cancel_event=worker_shutdown_event,
        )

    def test_orchestrator_crash_marks_job_failed(self):
        import_job = create_import_job_record()

        with mock.patch.object(
            self.orchestrator, "process", side_effect=RuntimeError("boom")
        ):
            with self.assertRaisesRegex(RuntimeError, "boom"):
                process_import_job_task(str(import_job.pk))

        import_job.refresh_from_db()
        self.assertEqual(import_job.status, ImportJob.Status.FAILED)
        self.assertEqual(import_job.error_message, "Unhandled exception: boom")


class WorkerShutdownTests(SimpleTestCase):
    def tearDown(self):
        worker_shutdown_event.clear()

    def test_worker_shutdown_sets_cancel_event(self):
        self.assertFalse(worker_shutdown_event.is_set())

        worker_shutting_down.send(
            sender="worker", sig="SIGTERM", how="Warm", exitcode=0
        )

        self.assertTrue(worker_shutdown_event.is_set())

    def test_pool_process_exit_sets_cancel_event(self):
        self.assertFalse(worker_shutdown_event.is_set())

        worker_process_shutdown.send(sender=None, pid=4321, exitcode=0)

        self.assertTrue(worker_shutdown_event.is_set())
