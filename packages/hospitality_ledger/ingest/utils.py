"""Helpers shared by the statement adapters.

Locating the real header below a bank preamble, reading the table with the
stdlib :mod:`csv` module (quoted commas, short rows padded), decoding bytes and
parsing the date formats the supported exports use. Header problems raise
``csv.Error`` so adapters can turn them into a single descriptive error.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from ..errors import ParseError

HEADER_SCAN_LINES = 10

_BALANCE_RE = re.compile(
    r"^(opening|closing|available|statement)\s+balance"
    r"|^balance\s+(b/?f|c/?f|brought\s+forward|carried\s+forward)",
    re.IGNORECASE,
)


def decode_content(content: bytes | str) -> str:
    """Return statement text, accepting UTF-8 (with or without BOM) or Windows-1252."""

    if isinstance(content, str):
        return content.lstrip("\ufeff")
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError("File is not valid UTF-8 or Windows-1252 text")


def clean_text(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", value.replace("\r", " ").replace("\n", " ")).strip()


def norm_header(value: str) -> str:
    return clean_text(value).casefold()


def is_balance_line(description: str) -> bool:
    return bool(_BALANCE_RE.search(description.strip()))


def locate_header(
    text: str, required: Iterable[str], *, max_lines: int = HEADER_SCAN_LINES
) -> int:
    """Return the index of the first line (within ``max_lines``) naming every required column.

    Raises ``csv.Error`` when no such line exists.
    """

    wanted = {norm_header(c) for c in required}
    lines = text.splitlines()
    for idx, line in enumerate(lines[:max_lines]):
        cells = next(csv.reader([line]), [])
        if wanted <= {norm_header(c) for c in cells}:
            return idx
    raise csv.Error(
        "could not locate the header row; expected columns: " + ", ".join(sorted(required))
    )


@dataclass(frozen=True, slots=True)
class TableRow:
    line_no: int
    cells: dict[str, str]

    def get(self, column: str) -> str:
        return self.cells.get(norm_header(column), "")


def read_table(
    text: str, required: Sequence[str], *, max_lines: int = HEADER_SCAN_LINES
) -> Iterator[TableRow]:
    """Yield data rows below the located header keyed by normalized column name.

    Rows shorter than the header are padded with empty strings; fully blank
    rows are dropped.
    """

    header_idx = locate_header(text, required, max_lines=max_lines)
    remainder = "".join(text.splitlines(keepends=True)[header_idx:])
    reader = csv.reader(io.StringIO(remainder))
    header = [norm_header(h) for h in next(reader)]
    for cells in reader:
        if not any(c.strip() for c in cells):
            continue
        padded = list(cells) + [""] * (len(header) - len(cells))
        yield TableRow(
            line_no=header_idx + reader.line_num,
            cells={name: padded[i].strip() for i, name in enumerate(header) if name},
        )


ISO_DATE = ("%Y-%m-%d",)


def parse_date(value: str, formats: Sequence[str]) -> date:
    """Parse ``value`` with the first matching ``strptime`` format; ``ValueError`` otherwise."""

    s = clean_text(value)
    for fmt in formats:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognised date {value!r}")


__all__ = [
    "HEADER_SCAN_LINES",
    "ISO_DATE",
    "TableRow",
    "clean_text",
    "decode_content",
    "is_balance_line",
    "locate_header",
    "norm_header",
    "parse_date",
    "read_table",
]
