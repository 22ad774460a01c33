from django.test import SimpleTestCase

from importer.isbn import (
    digit_count,
    is_valid_isbn_length,
    isbn10_check_character,
    isbn10_to_isbn13,
    isbn13_check_digit,
    normalize_isbn,
)


class NormalizeIsbnTests(SimpleTestCase):
    def test_known_values(self):
        self.assertEqual(normalize_isbn("123456789"), "9781234567897")
        self.assertEqual(normalize_isbn("0123456789"), "9780123456786")
        self.assertEqual(normalize_isbn("978-0-123456-78-6"), "9780123456786")
        self.assertEqual(normalize_isbn("0-262-03384-8"), "9780262033848")

    def test_empty_and_whitespace(self):
        self.assertEqual(normalize_isbn(""), "")
        self.assertEqual(normalize_isbn("   \t"), "")
        self.assertEqual(normalize_isbn(None), "")

    def test_garbage_is_total(self):
        self.assertEqual(normalize_isbn("not an isbn"), "")
        self.assertEqual(normalize_isbn("12-34"), "1234")
        self.assertEqual(normalize_isbn("!!!@@@"), "")

    def test_labels_are_discarded(self):
        self.assertEqual(normalize_isbn("ISBN: 0-306-40615-2"), "9780306406157")
        self.assertEqual(normalize_isbn("ISBN-10: 0306406152"), "9780306406157")
        self.assertEqual(normalize_isbn("isbn-13 978-0-306-40615-7"), "9780306406157")
        self.assertEqual(normalize_isbn("ISBN 9780306406157"), "9780306406157")

    def test_label_does_not_swallow_leading_digits(self):
        self.assertEqual(normalize_isbn("ISBN 1012345678"), "9781012345679")

    def test_check_character_x(self):
        self.assertEqual(normalize_isbn("0-8044-2957-X"), "9780804429573")
        self.assertEqual(normalize_isbn("080442957x"), "9780804429573")

    def test_ten_character_check_is_not_verified(self):
        # The ISBN-10 check character is recomputed rather than validated
        self.assertEqual(normalize_isbn("0306406150"), normalize_isbn("0306406152"))

    def test_thirteen_digits_pass_through(self):
        self.assertEqual(normalize_isbn("9780306406157"), "9780306406157")
        # The check digit of a 13-digit value is not verified
        self.assertEqual(normalize_isbn("9780306406150"), "9780306406150")

    def test_idempotent_for_thirteen_digits(self):
        for value in ("9780306406157", "978-0-262-03384-8", "0306406152"):
            once = normalize_isbn(value)
            self.assertEqual(normalize_isbn(once), once)

    def test_other_lengths_return_residue(self):
        self.assertEqual(normalize_isbn("12345678"), "12345678")
        self.assertEqual(normalize_isbn("97803064061571"), "97803064061571")
        self.assertEqual(normalize_isbn("X23456789X"), "X23456789X")


class IsbnHelperTests(SimpleTestCase):
    def test_isbn10_check_character(self):
        self.assertEqual(isbn10_check_character("030640615"), "2")
        self.assertEqual(isbn10_check_character("123456789"), "X")
        with self.assertRaises(ValueError):
            isbn10_check_character("12345")

    def test_isbn13_check_digit(self):
        self.assertEqual(isbn13_check_digit("978030640615"), "7")
        self.assertEqual(isbn13_check_digit("978012345678"), "6")
        with self.assertRaises(ValueError):
            isbn13_check_digit("97803064061X")

    def test_isbn10_to_isbn13(self):
        self.assertEqual(isbn10_to_isbn13("0262033848"), "9780262033848")
        with self.assertRaises(ValueError):
            isbn10_to_isbn13("026203384")

    def test_digit_count_and_length(self):
        self.assertEqual(digit_count("978-0-306"), 7)
        self.assertTrue(is_valid_isbn_length("0306406152"))
        self.assertTrue(is_valid_isbn_length("9780306406157"))
        self.assertFalse(is_valid_isbn_length("030640615X"))
        self.assertFalse(is_valid_isbn_length("12345"))
