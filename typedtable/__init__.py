"""
typedtable — delimited text tables with optional per-cell type inference.

Contract (v0):
- First line is the header; it defines the column titles.
- Fields are split on a single separator character (default ",").
- Line endings: "LF", "CRLF", or "AUTO" (fixed by the first \\r or \\n seen).
- A trailing empty header field is dropped; trailing empty data fields are kept.
- Every data row must have exactly as many fields as the header.
- Blank lines are rejected, except at the very end of the stream.
- Inference (auto_derive_type=True):
    "12" -> Integer, "1.5" -> Float, anything else -> Text
  One pair of surrounding double quotes is stripped before classifying.
  No escaping: embedded quotes, separators and newlines are not supported.
- Writing: Text verbatim, Integer as decimal, Float fixed-point at
  double_precision digits.
- Errors: raise immediately with a TableError subclass naming the line.

API:
- parse(f, ...) / loads(text, ...) -> Table
- write(table, f) -> int / dumps(table) -> str
- Table: titles, rows, accessors, add_row/remove_row/clear
- detect_type(raw) -> Text | Integer | Float

Files should be opened with newline="" so line endings reach the reader
untranslated.

Python: 3.10+
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


# ----------------------------
# Exceptions
# ----------------------------

class TableError(ValueError):
    """Base error for parse, lookup and row-mutation failures."""

    def __init__(self, *, line: Optional[int] = None, reason: str) -> None:
        msg = f"{type(self).__name__}(line={line}): {reason}"
        super().__init__(msg)
        self.line = line        # 1-based line in the source text (header is 1)
        self.reason = reason


class EmptyHeaderError(TableError):
    def __init__(self) -> None:
        super().__init__(line=1, reason="Header line is empty")


class BlankInteriorLineError(TableError):
    def __init__(self, line: int) -> None:
        super().__init__(line=line, reason="Invalid data line (empty line)")


class RowLengthMismatchError(TableError):
    def __init__(self, line: int, expected: int, found: int) -> None:
        super().__init__(
            line=line,
            reason=f"Invalid data line: expected {expected} fields, found {found}",
        )
        self.expected = expected
        self.found = found


class InvalidValueCountError(TableError):
    def __init__(self, expected: int, found: int) -> None:
        super().__init__(reason=f"Invalid value count: expected {expected}, got {found}")
        self.expected = expected
        self.found = found


class IndexOutOfRangeError(TableError, IndexError):
    def __init__(self, what: str, index: Any, size: int) -> None:
        super().__init__(reason=f"{what} {index!r} out of range (size {size})")
        self.index = index
        self.size = size


# ----------------------------
# Settings
# ----------------------------

LineEnding = str  # "LF" | "CRLF" | "AUTO"

LF: LineEnding = "LF"
CRLF: LineEnding = "CRLF"
AUTO: LineEnding = "AUTO"

_LINE_ENDINGS: Tuple[LineEnding, ...] = (LF, CRLF, AUTO)
_TERMINATORS = {LF: "\n", CRLF: "\r\n", AUTO: "\n"}
_FORBIDDEN_SEPARATORS = {"\r", "\n", '"'}


@dataclass
class Settings:
    ending: LineEnding = LF
    separator: str = ","
    auto_derive_type: bool = False
    double_precision: int = 1

    def __post_init__(self) -> None:
        self.set_ending(self.ending)
        self.set_separator(self.separator)
        self.set_double_precision(self.double_precision)
        self.auto_derive_type = bool(self.auto_derive_type)

    def set_ending(self, ending: LineEnding) -> "Settings":
        if ending not in _LINE_ENDINGS:
            raise ValueError(f"Unknown line ending: {ending!r} (expected one of {_LINE_ENDINGS})")
        self.ending = ending
        return self

    def set_separator(self, separator: str) -> "Settings":
        if not isinstance(separator, str) or len(separator) != 1:
            raise ValueError(f"Separator must be a single character, got {separator!r}")
        if separator in _FORBIDDEN_SEPARATORS:
            raise ValueError(f"Separator {separator!r} is reserved")
        self.separator = separator
        return self

    def set_auto_derive_type(self, opt: bool) -> "Settings":
        self.auto_derive_type = bool(opt)
        return self

    def set_double_precision(self, precision: int) -> "Settings":
        if isinstance(precision, bool) or not isinstance(precision, int) or precision < 0:
            raise ValueError(f"Precision must be a non-negative integer, got {precision!r}")
        self.double_precision = precision
        return self

    @property
    def terminator(self) -> str:
        return _TERMINATORS[self.ending]

    def copy(self) -> "Settings":
        return replace(self)


def _resolve_settings(settings: Optional[Settings], options: Any) -> Settings:
    """Copy `settings` (or the defaults) and apply keyword overrides."""
    base = settings if settings is not None else Settings()
    return replace(base, **options)


# ----------------------------
# Values
# ----------------------------

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Integer:
    value: int

    def __post_init__(self) -> None:
        if not (_INT64_MIN <= self.value <= _INT64_MAX):
            raise ValueError(f"Integer out of 64-bit range: {self.value!r}")


@dataclass(frozen=True)
class Float:
    value: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise ValueError(f"Float must be finite: {self.value!r}")


Value = Union[Text, Integer, Float]


def as_value(obj: Any) -> Value:
    """Wrap a plain str/int/float as a Value; Values pass through unchanged."""
    if isinstance(obj, (Text, Integer, Float)):
        return obj
    if isinstance(obj, bool):
        raise TypeError(f"Unsupported cell type: {type(obj).__name__}")
    if isinstance(obj, str):
        return Text(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, float):
        return Float(obj)
    raise TypeError(f"Unsupported cell type: {type(obj).__name__}")


# ----------------------------
# Tokenizer
# ----------------------------

def split_header(line: str, separator: str) -> List[str]:
    """Split a header line; a single trailing empty field is dropped."""
    fields = line.split(separator)
    if fields and fields[-1] == "":
        fields.pop()
    return fields


def split_fields(line: str, separator: str) -> List[str]:
    """Split a data line; every field is kept, trailing empties included."""
    return line.split(separator)


# ----------------------------
# Type inference
# ----------------------------

def _strip_quotes(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == '"' and raw[-1] == '"':
        return raw[1:-1]
    return raw


def detect_type(raw: str) -> Value:
    """
    Classify one raw field as Integer, Float or Text.
    - One pair of surrounding double quotes is stripped first.
    - Optional leading sign, digits, at most one '.' -> numeric.
    - Integers outside the signed 64-bit range stay Text.
    """
    s = _strip_quotes(raw)
    if not s:
        return Text(s)

    is_float = False
    has_digit = False
    for i, ch in enumerate(s):
        if "0" <= ch <= "9":
            has_digit = True
        elif ch == ".":
            if is_float:
                return Text(s)
            is_float = True
        elif i == 0 and ch in "+-":
            continue
        else:
            return Text(s)

    if not has_digit:
        return Text(s)
    if is_float:
        x = float(s)
        if not math.isfinite(x):
            return Text(s)
        return Float(x)

    digits = s.lstrip("+-").lstrip("0")
    if len(digits) > 19:
        return Text(s)
    n = int(digits or "0")
    if s[0] == "-":
        n = -n
    if not (_INT64_MIN <= n <= _INT64_MAX):
        return Text(s)
    return Integer(n)


# ----------------------------
# Reader
# ----------------------------

class _LineSource:
    """Buffered line cutter over a text stream with a switchable terminator."""

    _CHUNK = 8192

    def __init__(self, f: Any) -> None:
        self._f = f
        self._buf = ""
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._f.read(self._CHUNK)
        if not chunk:
            self._eof = True
            return False
        self._buf += chunk
        return True

    def read_until(self, stops: str) -> Tuple[str, str]:
        """
        Return (line, stop) where `stop` is the stop character that ended the
        line, or "" when the stream ran out first.
        """
        scanned = 0
        while True:
            hits = [i for i in (self._buf.find(c, scanned) for c in stops) if i != -1]
            if hits:
                i = min(hits)
                line, stop = self._buf[:i], self._buf[i]
                self._buf = self._buf[i + 1:]
                return line, stop
            scanned = len(self._buf)
            if not self._fill():
                line, self._buf = self._buf, ""
                return line, ""

    def discard(self, ch: str) -> None:
        """Consume `ch` if it is the next character in the stream."""
        if not self._buf:
            self._fill()
        if self._buf.startswith(ch):
            self._buf = self._buf[1:]


def _read_header(src: _LineSource, settings: Settings) -> str:
    if settings.ending == AUTO:
        line, stop = src.read_until("\r\n")
        settings.ending = CRLF if stop == "\r" else LF
        logger.debug("Detected line ending %s", settings.ending)
    else:
        line, stop = src.read_until("\r" if settings.ending == CRLF else "\n")

    if not line:
        raise EmptyHeaderError()
    if stop == "\r":
        src.discard("\n")
    return line


def _parse_into(table: "Table", f: Any) -> None:
    settings = table.settings
    src = _LineSource(f)

    header = _read_header(src, settings)
    table.set_titles(split_header(header, settings.separator))

    stop_char = "\r" if settings.ending == CRLF else "\n"
    sep = settings.separator
    width = table.column_count
    line_no = 1
    while True:
        line, stop = src.read_until(stop_char)
        line_no += 1
        if not line:
            if not stop:
                break
            raise BlankInteriorLineError(line_no)
        if stop == "\r":
            src.discard("\n")

        fields = split_fields(line, sep)
        if settings.auto_derive_type:
            row: List[Value] = [detect_type(x) for x in fields]
        else:
            row = [Text(x) for x in fields]

        if len(row) != width:
            raise RowLengthMismatchError(line_no, width, len(row))
        table._rows.append(row)

        if not stop:
            break

    logger.debug("Parsed %d rows x %d columns", table.row_count, width)


def parse(f: Any, settings: Optional[Settings] = None, **options: Any) -> Table:
    """Parse a readable text stream into a Table."""
    return Table.parse(f, settings, **options)


def loads(text: str, settings: Optional[Settings] = None, **options: Any) -> Table:
    return Table.parse(io.StringIO(text), settings, **options)


# ----------------------------
# Renderer / writer
# ----------------------------

def render_value(value: Value, precision: int = 1) -> str:
    if isinstance(value, Text):
        return value.value
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, Float):
        # '#' keeps the '.' at precision 0 so the cell still reads back as a float
        fmt = f"#.{precision}f" if precision == 0 else f".{precision}f"
        return format(value.value, fmt)
    raise AssertionError(f"Unsupported value: {value!r}")


def _iter_lines(table: "Table") -> Iterator[str]:
    settings = table.settings
    sep, term = settings.separator, settings.terminator
    yield sep.join(table._titles) + term
    for row in table._rows:
        yield sep.join(render_value(v, settings.double_precision) for v in row) + term


def write(table: "Table", f: Any) -> int:
    """
    Write `table` to a text stream.
    Returns the number of characters written, as counted by text streams;
    this differs from the encoded byte count for non-ASCII data.
    """
    if table.empty():
        return 0
    total = 0
    for line in _iter_lines(table):
        f.write(line)
        total += len(line)
    logger.debug("Wrote %d characters", total)
    return total


def dumps(table: "Table") -> str:
    buf = io.StringIO()
    write(table, buf)
    return buf.getvalue()


# ----------------------------
# Table
# ----------------------------

Column = Union[int, str]


class Table:
    """Column titles plus rows of typed values, with the settings used to read and write them."""

    def __init__(self, settings: Optional[Settings] = None, **options: Any) -> None:
        self.settings = _resolve_settings(settings, options)
        self._titles: List[str] = []
        self._rows: List[List[Value]] = []

    @classmethod
    def parse(cls, source: Any, settings: Optional[Settings] = None, **options: Any) -> "Table":
        """Build a table from a string or a readable text stream."""
        if isinstance(source, str):
            source = io.StringIO(source)
        table = cls(settings, **options)
        _parse_into(table, source)
        return table

    # sizes

    @property
    def column_count(self) -> int:
        return len(self._titles)

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[List[Value]]:
        for row in self._rows:
            yield list(row)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self._titles == other._titles and self._rows == other._rows

    def __repr__(self) -> str:
        return f"Table(titles={self._titles!r}, rows={self.row_count})"

    # titles

    @property
    def titles(self) -> List[str]:
        return list(self._titles)

    def get_titles(self) -> List[str]:
        return list(self._titles)

    def set_titles(self, titles: Iterable[str]) -> None:
        """Replace the titles; existing rows are dropped."""
        self.clear()
        self._titles = list(titles)

    def search_title(self, title: str) -> int:
        for i, t in enumerate(self._titles):
            if t == title:
                return i
        raise IndexOutOfRangeError("column", title, len(self._titles))

    # access

    def _column_index(self, column: Column) -> int:
        if isinstance(column, str):
            return self.search_title(column)
        return self._check_index("column", column, len(self._titles))

    @staticmethod
    def _check_index(what: str, index: int, size: int) -> int:
        if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < size):
            raise IndexOutOfRangeError(what, index, size)
        return index

    @property
    def rows(self) -> List[List[Value]]:
        return [list(r) for r in self._rows]

    def get_row(self, row: int) -> List[Value]:
        return list(self._rows[self._check_index("row", row, len(self._rows))])

    def get_column(self, column: Column) -> List[Value]:
        j = self._column_index(column)
        return [r[j] for r in self._rows]

    def get_value(self, column: Column, row: int) -> Value:
        j = self._column_index(column)
        return self._rows[self._check_index("row", row, len(self._rows))][j]

    # mutation

    def add_row(self, values: Sequence[Any]) -> None:
        if len(values) != len(self._titles):
            raise InvalidValueCountError(len(self._titles), len(values))
        row = [as_value(v) for v in values]
        if not self.settings.auto_derive_type:
            # without inference every stored cell is Text
            precision = self.settings.double_precision
            row = [v if isinstance(v, Text) else Text(render_value(v, precision)) for v in row]
        self._rows.append(row)

    def remove_row(self, index: int) -> None:
        del self._rows[self._check_index("row", index, len(self._rows))]

    def remove_rows(self, begin: int, end: int) -> None:
        """Remove rows in the half-open range [begin, end)."""
        n = len(self._rows)
        for idx in (begin, end):
            if isinstance(idx, bool) or not isinstance(idx, int) or not (0 <= idx <= n):
                raise IndexOutOfRangeError("row", idx, n)
        if begin > end:
            raise IndexOutOfRangeError("row range", (begin, end), n)
        del self._rows[begin:end]

    def empty(self) -> bool:
        return not self._titles and not self._rows

    def clear(self) -> None:
        self._titles = []
        self._rows = []

    # output

    def write(self, f: Any) -> int:
        return write(self, f)

    def to_string(self) -> str:
        return dumps(self)


__all__ = [
    "TableError",
    "EmptyHeaderError",
    "BlankInteriorLineError",
    "RowLengthMismatchError",
    "InvalidValueCountError",
    "IndexOutOfRangeError",
    "Settings",
    "LF",
    "CRLF",
    "AUTO",
    "Text",
    "Integer",
    "Float",
    "Value",
    "as_value",
    "detect_type",
    "split_header",
    "split_fields",
    "render_value",
    "Table",
    "parse",
    "loads",
    "write",
    "dumps",
    "__version__",
]
