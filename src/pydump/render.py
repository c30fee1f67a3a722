"""Output formats for dumped rows.

Raw and CSV output are meant for people and scale values into readable
units. JSON and key=value output are meant for programs and keep values
unscaled.
"""

import csv
import io
import json
import logging
import math
import re
from collections.abc import Sequence
from typing import Any, BinaryIO

from pydump.errors import RenderError
from pydump.models import Kind, OutputFormat, Unit
from pydump.registry import FieldSpec

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if abs(size) < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size = size / 1024
    return f"{size:.1f} PB"


def format_duration(seconds: float) -> str:
    """Format a duration as ``H:MM:SS``, prefixed with days when needed."""
    total = int(seconds)
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if days > 0:
        return f"{days}d {hours}:{minutes:02d}:{secs:02d}"
    return f"{hours}:{minutes:02d}:{secs:02d}"


def _non_finite(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def human_text(field: FieldSpec, value: Any) -> str:
    """Render ``value`` for raw and CSV output. NaN and infinity render as missing."""
    if value is None or _non_finite(value):
        return ""
    if field.kind is Kind.TEXT:
        return str(value)
    if field.kind is Kind.TIMESTAMP:
        return str(int(value))
    if field.kind is Kind.DURATION:
        return format_duration(value)
    if field.unit is Unit.BYTES:
        return format_bytes(value)
    if field.unit is Unit.BYTES_PER_SEC:
        return f"{format_bytes(value)}/s"
    if field.unit is Unit.PERCENT:
        return f"{value:.2f}%"
    if field.unit is Unit.PER_SEC:
        return f"{value:.1f}/s"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def machine_value(field: FieldSpec, value: Any) -> Any:
    """Render ``value`` for JSON and key=value output. NaN and infinity become None."""
    if value is None or _non_finite(value):
        return None
    if field.kind is Kind.TEXT:
        return str(value)
    if field.kind is Kind.TIMESTAMP:
        return int(value)
    if isinstance(value, float):
        return round(value, 3)
    return value


def machine_text(field: FieldSpec, value: Any) -> str:
    """Unscaled text of a value, as matched by ``--filter``."""
    rendered = machine_value(field, value)
    return "" if rendered is None else str(rendered)


class Formatter:
    """Base formatter: one line per row, optional title line."""

    titled = True

    def title(self, fields: Sequence[FieldSpec]) -> str:
        raise NotImplementedError

    def row(self, fields: Sequence[FieldSpec], row: Row) -> str:
        raise NotImplementedError

    def batch(self, fields: Sequence[FieldSpec], rows: Sequence[Row]) -> str:
        """Render a whole time slice without titles."""
        return "".join(self.row(fields, row) for row in rows)


class RawFormatter(Formatter):
    """Space separated, fixed width columns."""

    @staticmethod
    def _width(field: FieldSpec) -> int:
        return max(len(field.name), field.width)

    def title(self, fields: Sequence[FieldSpec]) -> str:
        return " ".join(f"{f.name:<{self._width(f)}}" for f in fields).rstrip() + "\n"

    def _cell(self, field: FieldSpec, text: str, last: bool) -> str:
        width = self._width(field)
        # Only the last column may exceed its width.
        if not last and len(text) > width:
            text = text[: width - 3] + "..."
        return f"{text:<{width}}"

    def row(self, fields: Sequence[FieldSpec], row: Row) -> str:
        last = len(fields) - 1
        cells = (
            self._cell(f, human_text(f, row.get(f.name)), i == last)
            for i, f in enumerate(fields)
        )
        return " ".join(cells).rstrip() + "\n"


class CsvFormatter(Formatter):
    """Comma separated values, quoted by the csv module."""

    @staticmethod
    def _line(cells: Sequence[str]) -> str:
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="\n").writerow(cells)
        return buffer.getvalue()

    def title(self, fields: Sequence[FieldSpec]) -> str:
        return self._line([f.name for f in fields])

    def row(self, fields: Sequence[FieldSpec], row: Row) -> str:
        return self._line([human_text(f, row.get(f.name)) for f in fields])


class JsonFormatter(Formatter):
    """One JSON array of row objects per time slice."""

    titled = False

    def row(self, fields: Sequence[FieldSpec], row: Row) -> str:
        return json.dumps(self._object(fields, row), allow_nan=False)

    @staticmethod
    def _object(fields: Sequence[FieldSpec], row: Row) -> dict[str, Any]:
        return {f.name: machine_value(f, row.get(f.name)) for f in fields}

    def batch(self, fields: Sequence[FieldSpec], rows: Sequence[Row]) -> str:
        return json.dumps([self._object(fields, row) for row in rows], allow_nan=False) + "\n"


_KV_QUOTE = re.compile(r'[\s="]')


class KeyValFormatter(Formatter):
    """``field=value`` pairs, one row per line."""

    titled = False

    def row(self, fields: Sequence[FieldSpec], row: Row) -> str:
        pairs = []
        for f in fields:
            text = machine_text(f, row.get(f.name))
            if _KV_QUOTE.search(text):
                text = json.dumps(text)
            pairs.append(f"{f.name}={text}")
        return " ".join(pairs) + "\n"


FORMATTERS: dict[OutputFormat, type[Formatter]] = {
    OutputFormat.RAW: RawFormatter,
    OutputFormat.CSV: CsvFormatter,
    OutputFormat.JSON: JsonFormatter,
    OutputFormat.KV: KeyValFormatter,
}


def render_rows(
    output_format: OutputFormat, fields: Sequence[FieldSpec], rows: Sequence[Row]
) -> bytes:
    """Render one slice with a single leading title where the format has one."""
    buffer = io.BytesIO()
    renderer = Renderer(buffer, fields, output_format)
    renderer.render_batch(rows)
    renderer.finish()
    return buffer.getvalue()


class Renderer:
    """
    Writes time slices to a byte sink in one output format.

    Title state is kept across slices: the title is written once before the
    first slice and, with ``repeat_title=k``, again before every k-th data
    row of the run.
    """

    def __init__(
        self,
        sink: BinaryIO,
        fields: Sequence[FieldSpec],
        output_format: OutputFormat = OutputFormat.RAW,
        repeat_title: int | None = None,
        disable_title: bool = False,
    ) -> None:
        """
        Initialize the Renderer.

        Args:
            sink: Binary stream to write to. The renderer flushes but never closes it.
            fields: Resolved fields, in output order.
            output_format: Output format to use.
            repeat_title: Re-emit the title every N data rows (raw and csv).
            disable_title: Never emit a title row.
        """
        self._sink = sink
        self._fields = list(fields)
        self._formatter = FORMATTERS[output_format]()
        self._repeat = repeat_title or 0
        self._show_title = self._formatter.titled and not disable_title
        self._title_written = False
        self._rows_written = 0

    @property
    def rows_written(self) -> int:
        return self._rows_written

    def _title_chunk(self) -> str:
        self._title_written = True
        return self._formatter.title(self._fields)

    def render_batch(self, rows: Sequence[Row]) -> None:
        """Render one time slice and flush it to the sink."""
        if not self._fields and not isinstance(self._formatter, JsonFormatter):
            self._rows_written += len(rows)
            return

        if not self._formatter.titled:
            self._write(self._formatter.batch(self._fields, rows))
            self._rows_written += len(rows)
            return

        chunks: list[str] = []
        if self._show_title and not self._title_written:
            chunks.append(self._title_chunk())
        for row in rows:
            if (
                self._show_title
                and self._repeat > 0
                and self._rows_written > 0
                and self._rows_written % self._repeat == 0
            ):
                chunks.append(self._title_chunk())
            chunks.append(self._formatter.row(self._fields, row))
            self._rows_written += 1
        self._write("".join(chunks))

    def finish(self) -> None:
        """Emit a lone title when no slice was rendered."""
        if self._fields and self._show_title and not self._title_written:
            self._write(self._title_chunk())

    def _write(self, text: str) -> None:
        if not text:
            return
        try:
            self._sink.write(text.encode("utf-8"))
            self._sink.flush()
        except OSError as e:
            raise RenderError(f"failed to write output: {e}") from e
