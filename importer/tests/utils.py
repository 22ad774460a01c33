import threading
import uuid
from collections import Counter
from itertools import count

from django.contrib.auth.models import User

from importer.exceptions import MetadataLookupError
from importer.isbn import normalize_isbn
from importer.models import ImportJob

# Sequential nine-digit stems which normalize to distinct ISBN-13s
_isbn_stems = count(306406150)
_user_numbers = count(1)


def make_isbns(n):
    return [normalize_isbn(str(next(_isbn_stems)).zfill(9)) for __ in range(n)]


def create_test_user(**kwargs):
    number = next(_user_numbers)
    kwargs.setdefault("username", f"importer-user-{number}")
    kwargs.setdefault("email", f"importer-user-{number}@example.com")
    return User.objects.create_user(**kwargs)


def create_import_job_record(*, isbns=None, library_id=None, **kwargs):
    if isbns is None:
        isbns = make_isbns(10)
    if library_id is None:
        library_id = uuid.uuid4()
    kwargs.setdefault("file_name", "books.csv")
    kwargs.setdefault("total_isbns", len(isbns))
    import_job = ImportJob(library_id=library_id, isbns=isbns, **kwargs)
    import_job.save()
    return import_job


class FakeLookup:
    """
    Returns metadata for every ISBN except those in ``failing``. ISBNs in
    ``flaky`` fail on their first attempt only.
    """

    def __init__(self, failing=(), flaky=()):
        self.failing = set(failing)
        self.flaky = set(flaky)
        self.calls = Counter()
        self.lock = threading.Lock()

    def lookup(self, isbn):
        with self.lock:
            self.calls[isbn] += 1
            attempt = self.calls[isbn]
        if isbn in self.failing or (isbn in self.flaky and attempt == 1):
            raise MetadataLookupError(isbn, "Not found", status_code=404)
        return {"isbn13": isbn, "title": f"Book {isbn}"}
