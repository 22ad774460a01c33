"""
ISBN normalization

Every identifier the importer handles is reduced to the 13-digit form before it
is stored or looked up. ``normalize_isbn`` never raises: input which cannot be
turned into an ISBN comes back as whatever digits (and ``X``) it contained, so
callers must check the length with ``is_valid_isbn_length`` before trusting the
result.
"""

import re

# "ISBN", "ISBN-10", "ISBN 13:", "isbn#" etc. The edition number only counts as
# part of the label when a separator follows it, otherwise "ISBN 1012345678"
# would lose its first two digits.
ISBN_LABEL_RE = re.compile(
    r"^\s*ISBN(?:[-\s]?1[03](?=[\s:#]|$))?\s*[:#]?\s*", re.IGNORECASE
)
NON_ISBN_CHARACTERS_RE = re.compile(r"[^0-9X]")

ISBN13_PREFIX = "978"


def isbn10_check_character(nine_digits: str) -> str:
    """
    Return the ISBN-10 check character for the first nine digits of an ISBN.

    The check character is ``(11 - sum(d[i] * (10 - i)) mod 11) mod 11`` with
    a result of 10 written as ``X``.
    """
    if len(nine_digits) != 9 or not nine_digits.isdigit():
        raise ValueError(f"Expected nine digits, got {nine_digits!r}")

    total = sum(int(digit) * (10 - i) for i, digit in enumerate(nine_digits))
    check = (11 - total % 11) % 11
    return "X" if check == 10 else str(check)


def isbn13_check_digit(twelve_digits: str) -> str:
    """
    Return the EAN-13 check digit for the first twelve digits of an ISBN-13.

    Digits are weighted alternately by 1 and 3, starting with 1.
    """
    if len(twelve_digits) != 12 or not twelve_digits.isdigit():
        raise ValueError(f"Expected twelve digits, got {twelve_digits!r}")

    total = sum(
        int(digit) * (1 if i % 2 == 0 else 3) for i, digit in enumerate(twelve_digits)
    )
    return str((10 - total % 10) % 10)


def isbn10_to_isbn13(isbn10: str) -> str:
    """
    Convert a ten character ISBN into its 978-prefixed 13-digit form.

    The existing ISBN-10 check character is discarded rather than verified.
    """
    if len(isbn10) != 10 or not isbn10[:9].isdigit():
        raise ValueError(f"{isbn10!r} is not a ten character ISBN")

    stem = ISBN13_PREFIX + isbn10[:9]
    return stem + isbn13_check_digit(stem)


def digit_count(value: str) -> int:
    return sum(1 for character in value if character.isdigit())


def is_valid_isbn_length(value: str) -> bool:
    return digit_count(value) in (10, 13)


def normalize_isbn(raw) -> str:
    """
    Convert a raw identifier into the canonical 13-digit form.

    Behavior:
        - Empty or whitespace-only input returns an empty string.
        - A leading "ISBN" label is discarded, then everything except digits
          and ``X`` is removed.
        - Nine digits are completed with their ISBN-10 check character and
          then converted like any other ten character form.
        - Ten characters whose first nine are digits are converted to the
          13-digit form with a freshly computed check digit.
        - Thirteen digits are returned unchanged. The check digit is not
          verified.
        - Anything else is returned as the stripped residue.

    Args:
        raw (str | None): The identifier as it appeared in the source data.

    Returns:
        str: The normalized identifier or the residue described above.
    """
    if raw is None:
        return ""

    raw = str(raw)
    if not raw.strip():
        return ""

    unlabelled = ISBN_LABEL_RE.sub("", raw, count=1)
    residue = NON_ISBN_CHARACTERS_RE.sub("", unlabelled.upper())

    if len(residue) == 9 and residue.isdigit():
        residue += isbn10_check_character(residue)

    if len(residue) == 10 and residue[:9].isdigit():
        return isbn10_to_isbn13(residue)

    return residue
