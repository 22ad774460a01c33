"""
Extraction of ISBNs from uploaded delimited text files
"""

import csv
from itertools import chain
from logging import getLogger

from .isbn import digit_count, is_valid_isbn_length, normalize_isbn

logger = getLogger(__name__)

CANDIDATE_DELIMITERS = ",;\t|"
DEFAULT_DELIMITER = ","
HEADER_TOKEN = "isbn"
UTF8_BOM = "\ufeff"
SAMPLE_LINES = 5


def detect_delimiter(sample: str) -> str:
    """
    Guess the field delimiter from the opening lines of a file.

    A character used the same number of times on every line wins over one
    which only appears on some of them, so a stray ";" in a "|" delimited
    header does not decide the delimiter. When the lines disagree too much to
    sniff, the first line is tried on its own before falling back to a comma.
    """
    sniffer = csv.Sniffer()
    first_line = sample.split("\n", 1)[0]
    for candidate in dict.fromkeys((sample, first_line)):
        try:
            return sniffer.sniff(candidate, delimiters=CANDIDATE_DELIMITERS).delimiter
        except csv.Error:
            continue
    return DEFAULT_DELIMITER


def find_header_column(fields):
    """
    Return the index of the first field mentioning "isbn", or None
    """
    for index, field in enumerate(fields):
        if HEADER_TOKEN in field.lower():
            return index
    return None


def find_candidate_field(fields):
    """
    Return the first field which looks like an ISBN, or None
    """
    for field in fields:
        if digit_count(field) in (10, 13):
            return field
    return None


def clean_field(value: str) -> str:
    return value.replace("-", "").strip().strip("\"'").strip()


def _decoded_lines(stream):
    first = True
    for line in stream:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if first:
            line = line.lstrip(UTF8_BOM)
            first = False
        yield line.rstrip("\r\n")


def _read_ahead(numbered_lines, count):
    """
    Consume lines until ``count`` non-blank ones have been read
    """
    buffered = []
    non_blank = 0
    for item in numbered_lines:
        buffered.append(item)
        if item[1].strip():
            non_blank += 1
            if non_blank == count:
                break
    return buffered


def _split_line(line: str, delimiter: str):
    return [field.strip() for field in next(csv.reader([line], delimiter=delimiter))]


def parse_isbns(stream, max_count=None):
    """
    Read a delimited text stream and return the unique, normalized ISBNs it
    contains in the order they first appear.

    Behavior:
        - The delimiter is detected from the first few non-blank lines.
        - If any field of the first non-blank line mentions "isbn" the line is
          treated as a header and that field's position is used for every
          following row. Rows which are too short to have that field are
          skipped.
        - Without a header, the first field of each row holding 10 or 13
          digits is used.
        - Values are normalized and kept only when they have 10 or 13 digits.
        - Reading stops once ``max_count`` identifiers have been collected.

    Rows which the csv module cannot parse are logged and skipped. Errors
    reading or decoding the stream propagate to the caller.

    Args:
        stream: A binary or text file-like object which yields lines.
        max_count (int | None): Maximum number of identifiers to return.

    Returns:
        list[str]: Normalized identifiers in first-seen order.
    """
    if max_count is not None and max_count < 1:
        raise ValueError("max_count must be a positive integer")

    isbns = []
    seen = set()
    delimiter = None
    isbn_column = None
    line_number = 0

    numbered_lines = enumerate(_decoded_lines(stream), start=1)
    sample = _read_ahead(numbered_lines, SAMPLE_LINES)
    sample_text = "\n".join(line for __, line in sample if line.strip())

    for line_number, line in chain(sample, numbered_lines):
        if not line.strip():
            continue

        first_line = delimiter is None
        if first_line:
            delimiter = detect_delimiter(sample_text)

        try:
            fields = _split_line(line, delimiter)
        except csv.Error as exc:
            logger.warning("Skipping malformed line %d: %s", line_number, exc)
            continue

        if first_line:
            isbn_column = find_header_column(fields)
            if isbn_column is not None:
                logger.debug(
                    "Using column %d (%r) for ISBNs", isbn_column, fields[isbn_column]
                )
                continue

        if isbn_column is not None:
            if isbn_column >= len(fields):
                continue
            value = fields[isbn_column]
        else:
            value = find_candidate_field(fields)

        if not value:
            continue

        isbn = normalize_isbn(clean_field(value))
        if not is_valid_isbn_length(isbn) or isbn in seen:
            continue

        seen.add(isbn)
        isbns.append(isbn)

        if max_count is not None and len(isbns) >= max_count:
            logger.warning(
                "Stopped reading at line %d after collecting the maximum of %d ISBNs",
                line_number,
                max_count,
            )
            break

    logger.info("Parsed %d ISBNs from %d lines", len(isbns), line_number)
    return isbns
