from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from importer.exceptions import MetadataLookupError
from importer.lookup import IsbnDbLookup

ISBN = "9780262033848"


def make_response(status_code=200, json_data=None, json_error=None):
    resp = mock.MagicMock()
    resp.status_code = status_code
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} Error"
        )
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


class IsbnDbLookupTests(SimpleTestCase):
    def setUp(self):
        self.lookup = IsbnDbLookup()
        self.session = mock.MagicMock()
        self.lookup._local.session = self.session

    def test_lookup(self):
        book = {"isbn13": ISBN, "title": "Introduction to Algorithms"}
        self.session.get.return_value = make_response(json_data={"book": book})

        self.assertEqual(self.lookup.lookup(ISBN), book)
        self.session.get.assert_called_once_with(
            f"https://isbndb.test/book/{ISBN}", timeout=(5.0, 30.0)
        )

    def test_not_found(self):
        self.session.get.return_value = make_response(404)

        with self.assertRaises(MetadataLookupError) as cm:
            self.lookup.lookup(ISBN)

        self.assertEqual(cm.exception.status_code, 404)
        self.assertEqual(cm.exception.isbn, ISBN)

    def test_server_error(self):
        self.session.get.return_value = make_response(503)

        with self.assertRaisesRegex(MetadataLookupError, "HTTP 503") as cm:
            self.lookup.lookup(ISBN)

        self.assertEqual(cm.exception.status_code, 503)

    def test_timeout(self):
        self.session.get.side_effect = requests.ReadTimeout("read timed out")

        with self.assertRaisesRegex(MetadataLookupError, "Timed out"):
            self.lookup.lookup(ISBN)

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")

        with self.assertRaisesRegex(MetadataLookupError, "Unable to look up"):
            self.lookup.lookup(ISBN)

    def test_invalid_json(self):
        self.session.get.return_value = make_response(
            json_error=ValueError("Expecting value")
        )

        with self.assertRaisesRegex(MetadataLookupError, "invalid JSON"):
            self.lookup.lookup(ISBN)

    def test_missing_book_record(self):
        self.session.get.return_value = make_response(
            json_data={"errorMessage": "Not Found"}
        )

        with self.assertRaisesRegex(MetadataLookupError, "did not include"):
            self.lookup.lookup(ISBN)

    @override_settings(ISBNDB_API_URL="https://api.example.com/v2/")
    def test_session_configuration(self):
        lookup = IsbnDbLookup(api_key="secret", pool_size=2)

        session = lookup.session

        self.assertIsInstance(session, requests.Session)
        self.assertIs(lookup.session, session)
        self.assertEqual(session.headers["Authorization"], "secret")
        self.assertEqual(
            lookup.book_url(ISBN), f"https://api.example.com/v2/book/{ISBN}"
        )
