"""
Book metadata lookups against the ISBNdb v2 API
"""

import threading
from logging import getLogger

import requests
from django.conf import settings
from requests.adapters import HTTPAdapter

from .exceptions import MetadataLookupError

logger = getLogger(__name__)


class IsbnDbLookup:
    """
    Resolve a single ISBN to the book record returned by ISBNdb.

    Every failure, including a missing record, raises MetadataLookupError so
    that the orchestrator can treat them all as retryable. Each thread gets its
    own requests session.
    """

    def __init__(self, api_url=None, api_key=None, timeout=None, pool_size=None):
        self.api_url = (api_url or settings.ISBNDB_API_URL).rstrip("/")
        self.api_key = settings.ISBNDB_API_KEY if api_key is None else api_key
        self.timeout = timeout or tuple(settings.IMPORTER_LOOKUP_TIMEOUT)
        self.pool_size = pool_size or settings.IMPORTER_MAX_WORKERS
        self._local = threading.local()

    @property
    def session(self):
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_maxsize=self.pool_size)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            session.headers.update(
                {"Authorization": self.api_key, "Accept": "application/json"}
            )
            self._local.session = session
        return session

    def book_url(self, isbn):
        return f"{self.api_url}/book/{isbn}"

    def lookup(self, isbn):
        url = self.book_url(isbn)

        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as exc:
            raise MetadataLookupError(
                isbn, f"Timed out looking up {isbn}: {exc}"
            ) from exc
        except requests.RequestException as exc:
            raise MetadataLookupError(
                isbn, f"Unable to look up {isbn}: {exc}"
            ) from exc

        if resp.status_code == 404:
            raise MetadataLookupError(
                isbn, f"No record found for {isbn}", status_code=404
            )

        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise MetadataLookupError(
                isbn,
                f"Lookup of {isbn} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
            ) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise MetadataLookupError(
                isbn, f"Lookup of {isbn} returned invalid JSON"
            ) from exc

        book = data.get("book") if isinstance(data, dict) else None
        if not isinstance(book, dict):
            logger.warning("Unexpected response for %s from %s: %r", isbn, url, data)
            raise MetadataLookupError(
                isbn, f"Lookup of {isbn} did not include a book record"
            )

        return book
