"""
Parser for card collection CSV exports.

Expects the 13-column export produced by the SWUDB collection page:

    Set,Card Number,Card Name,Card Title,Card Type,Aspects,Variant Type,
    Rarity,Foil,Stamp,Artist,Owned Count,Group Owned Count

Columns are read by position. The header is only fingerprinted (column
count and a first column of "Set"), not validated name by name.

Parsing is all-or-nothing: one bad row rejects the whole file.
"""

import codecs
import csv
from io import StringIO
from typing import BinaryIO

from swucol.models.card import ImportRow
from swucol.models.failure import EmptyInputError, MalformedInputError

# Spreadsheet tools (Excel in particular) prepend this to CSV exports
UTF8_BOM = codecs.BOM_UTF8

CSV_COLUMN_COUNT = 13
CSV_HEADER_FIRST_COLUMN = "Set"


def strip_bom(data: bytes) -> bytes:
    """Remove a leading UTF-8 byte order mark, if present."""
    if data.startswith(UTF8_BOM):
        return data[len(UTF8_BOM) :]
    return data


class _LineRecorder:
    """Line iterator that keeps the raw text of the record being read."""

    def __init__(self, text: str) -> None:
        self._lines = iter(StringIO(text, newline=""))
        self.consumed: list[str] = []

    def __iter__(self) -> "_LineRecorder":
        return self

    def __next__(self) -> str:
        line = next(self._lines)
        self.consumed.append(line)
        return line

    def take(self) -> str:
        raw = "".join(self.consumed)
        self.consumed.clear()
        return raw


def has_bare_quote(raw: str) -> bool:
    """
    True if a quote appears inside a field that did not start with one.

    The csv module keeps such quotes as literal text even in strict mode,
    while the export format only allows quotes around whole fields.
    """
    in_quotes = False
    quoted_field = False
    field_start = True
    for char in raw:
        if in_quotes:
            if char == '"':
                in_quotes = False
            continue
        if char == '"':
            # Opening quote, or the second half of an escaped ""
            if not (field_start or quoted_field):
                return True
            in_quotes = True
            quoted_field = True
            field_start = False
        elif char in ",\r\n":
            field_start = True
            quoted_field = False
        else:
            field_start = False
    return False


def _row_from_record(record: list[str]) -> ImportRow:
    return ImportRow(
        set=record[0],
        card_number=record[1],
        card_name=record[2],
        card_title=record[3],
        card_type=record[4],
        aspects=record[5],
        variant_type=record[6],
        rarity=record[7],
        foil=record[8],
        stamp=record[9],
        artist=record[10],
        owned_count=record[11],
        group_owned_count=record[12],
    )


def parse_card_csv(data: bytes | BinaryIO) -> list[ImportRow]:
    """
    Parse a collection CSV export into import rows.

    Args:
        data: Raw CSV bytes, or a binary stream to read them from

    Returns:
        Rows in file order. Never empty.

    Raises:
        MalformedInputError: If the bytes are not UTF-8, the header does not
            match the export format, or any data row has the wrong number of
            fields, broken quoting or no card name
        EmptyInputError: If the header is valid but no card rows follow
    """
    raw = data if isinstance(data, bytes) else data.read()

    try:
        text = strip_bom(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInputError("CSV is not valid UTF-8", detail=str(e)) from e

    lines = _LineRecorder(text)
    reader = csv.reader(lines, strict=True)

    try:
        header = next(reader, None)
        if header is None:
            raise MalformedInputError("CSV is empty")
        if len(header) != CSV_COLUMN_COUNT or header[0] != CSV_HEADER_FIRST_COLUMN:
            raise MalformedInputError(
                "CSV header does not match expected format",
                detail=f"expected {CSV_COLUMN_COUNT} columns starting with "
                f"{CSV_HEADER_FIRST_COLUMN!r}, got {len(header)}",
            )
        lines.take()

        rows: list[ImportRow] = []
        for record in reader:
            record_text = lines.take()
            # Blank lines carry no card
            if not record:
                continue

            if has_bare_quote(record_text):
                raise MalformedInputError(
                    f"CSV line {reader.line_num} has a quote inside an unquoted field"
                )

            if len(record) != CSV_COLUMN_COUNT:
                raise MalformedInputError(
                    f"CSV line {reader.line_num} has {len(record)} fields, "
                    f"expected {CSV_COLUMN_COUNT}"
                )

            row = _row_from_record(record)
            if not row.card_name:
                raise MalformedInputError(f"CSV line {reader.line_num} has no card name")

            rows.append(row)
    except csv.Error as e:
        raise MalformedInputError(
            f"CSV line {reader.line_num} could not be parsed", detail=str(e)
        ) from e

    if not rows:
        raise EmptyInputError()

    return rows
