"""Textual exports of recognition points.

Formats (points in store order, never sorted or deduplicated):
    - JSON: ``{label: [{"id", "x", "y"}, ...]}``, groups in first-seen
      order, unlabeled points under "Unlabeled"
    - XML: ``<points><group label=".."><point id x y /></group></points>``
    - CSV: header ``id,label,x,y``, every row field quoted, quotes doubled,
      CRLF line endings
    - HTML table: bordered ``<table>`` with the CSV columns, only ``<``/``>``
      escaped in labels; served as an Excel-compatible spreadsheet

``x``/``y`` are the derived real coordinates.  With a CoordinateFormat,
values are rounded (half away from zero) or truncated toward zero to a
fixed number of decimals; without one, raw floats are written.
"""

from __future__ import annotations

import csv
import io
import json
import math
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Iterable, Sequence
from xml.sax.saxutils import escape

from pointmapper.core.points import RecognitionPoint

UNLABELED = "Unlabeled"

_ATTR_ENTITIES = {'"': "&quot;"}

# integer digits of sys.float_info.max
_FLOAT_MAX_DIGITS = 309


class ExportFormat(Enum):
    """Export target with its download file name and MIME type."""

    JSON = ("json", "points.json", "application/json")
    XML = ("xml", "points.xml", "application/xml")
    CSV = ("csv", "points.csv", "text/csv;charset=utf-8")
    EXCEL = ("excel", "points.xls", "application/vnd.ms-excel")

    def __init__(self, key: str, filename: str, mime_type: str) -> None:
        self.key = key
        self.filename = filename
        self.mime_type = mime_type

    @classmethod
    def from_key(cls, key: str) -> ExportFormat:
        for fmt in cls:
            if fmt.key == key.lower():
                return fmt
        raise ValueError(f"Unknown export format {key!r}; expected one of {[f.key for f in cls]}")


@dataclass(frozen=True, slots=True)
class CoordinateFormat:
    """Fixed-decimal formatting of real coordinates.

    Parameters
    ----------
    precision : int
        Decimal places, 0..10.
    round : bool
        True rounds half away from zero; False truncates toward zero.
    """

    precision: int = 2
    round: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.precision <= 10:
            raise ValueError(f"precision must be in [0, 10], got {self.precision}")

    def text(self, value: float) -> str:
        value = float(value)
        if not math.isfinite(value):
            return repr(value)
        quantum = Decimal(1).scaleb(-self.precision)
        mode = ROUND_HALF_UP if self.round else ROUND_DOWN
        with localcontext() as ctx:
            # room for every integer digit of the largest float
            ctx.prec = _FLOAT_MAX_DIGITS + self.precision
            # -0.0 + 0.0 is +0.0, so an exact negative zero prints unsigned
            return str(Decimal(value + 0.0).quantize(quantum, rounding=mode))


class Exporter:
    """Serializes recognition points, grouped by label where the format groups.

    Parameters
    ----------
    coord_format : CoordinateFormat | None
        Formatting for x/y; None writes raw floats.
    unlabeled_name : str
        Group name for points with an empty label.
    """

    def __init__(
        self,
        coord_format: CoordinateFormat | None = None,
        unlabeled_name: str = UNLABELED,
    ) -> None:
        self.coord_format = coord_format
        self.unlabeled_name = unlabeled_name

    # -- Value formatting -----------------------------------------------------

    def coord_text(self, value: float) -> str:
        if self.coord_format is None:
            return repr(float(value))
        return self.coord_format.text(value)

    def coord_number(self, value: float) -> float | None:
        """JSON number for a coordinate; None (null) when not finite."""
        if not math.isfinite(value):
            return None
        if self.coord_format is None:
            return float(value)
        return float(self.coord_format.text(value))

    def group_name(self, point: RecognitionPoint) -> str:
        return point.label or self.unlabeled_name

    def grouped(self, points: Iterable[RecognitionPoint]) -> dict[str, list[RecognitionPoint]]:
        groups: dict[str, list[RecognitionPoint]] = {}
        for p in points:
            groups.setdefault(self.group_name(p), []).append(p)
        return groups

    # -- Formats --------------------------------------------------------------

    def to_grouped_json(self, points: Iterable[RecognitionPoint]) -> dict[str, list[dict]]:
        """Label → list of ``{"id", "x", "y"}`` mappings."""
        return {
            label: [
                {"id": p.id, "x": self.coord_number(p.real_x), "y": self.coord_number(p.real_y)}
                for p in members
            ]
            for label, members in self.grouped(points).items()
        }

    def to_json(self, points: Iterable[RecognitionPoint]) -> str:
        return json.dumps(self.to_grouped_json(points), indent=2, ensure_ascii=False)

    def to_xml(self, points: Iterable[RecognitionPoint]) -> str:
        lines = ['<?xml version="1.0" encoding="UTF-8"?>', '<points>']
        for label, members in self.grouped(points).items():
            lines.append(f'  <group label="{escape(label, _ATTR_ENTITIES)}">')
            for p in members:
                lines.append(
                    f'    <point id="{p.id}" x="{self.coord_text(p.real_x)}" '
                    f'y="{self.coord_text(p.real_y)}" />'
                )
            lines.append('  </group>')
        lines.append('</points>')
        return '\n'.join(lines)

    def to_csv(self, points: Iterable[RecognitionPoint]) -> str:
        buf = io.StringIO(newline='')
        buf.write('id,label,x,y\r\n')
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator='\r\n')
        for p in points:
            writer.writerow([str(p.id), p.label, self.coord_text(p.real_x), self.coord_text(p.real_y)])
        return buf.getvalue()

    def to_html_table(self, points: Iterable[RecognitionPoint]) -> str:
        parts = [
            '<html><head><meta charset="UTF-8"></head><body>',
            '<table border="1"><thead><tr><th>id</th><th>label</th><th>x</th><th>y</th></tr></thead><tbody>',
        ]
        for p in points:
            label = p.label.replace('<', '&lt;').replace('>', '&gt;')
            parts.append(
                f'<tr><td>{p.id}</td><td>{label}</td>'
                f'<td>{self.coord_text(p.real_x)}</td><td>{self.coord_text(p.real_y)}</td></tr>'
            )
        parts.append('</tbody></table></body></html>')
        return ''.join(parts)

    def export(self, fmt: ExportFormat, points: Sequence[RecognitionPoint]) -> str:
        if fmt is ExportFormat.JSON:
            return self.to_json(points)
        if fmt is ExportFormat.XML:
            return self.to_xml(points)
        if fmt is ExportFormat.CSV:
            return self.to_csv(points)
        return self.to_html_table(points)
