"""Tests for pointmapper.core.export.

Covers grouping order, coordinate formatting (round / truncate), escaping
and the CSV quoting and line-ending contract.

Run:
    pytest tests/test_export.py -v
"""

from __future__ import annotations

import csv
import io
import json
import math
import sys
from decimal import Decimal

import pytest

from pointmapper.core.export import CoordinateFormat, Exporter, ExportFormat
from pointmapper.core.points import RecognitionPoint


def point(pid: int, label: str = "", rx: float = 0.0, ry: float = 0.0) -> RecognitionPoint:
    return RecognitionPoint(id=pid, pixel_x=0, pixel_y=0, real_x=rx, real_y=ry, label=label)


@pytest.fixture
def points() -> list[RecognitionPoint]:
    return [
        point(1, "b", 1.125, -1.125),
        point(2, "", 2.0, 3.5),
        point(3, "a", 0.0, -0.0),
        point(4, "b", 10.0, 20.0),
    ]


class TestCoordinateFormat:
    def test_round_half_away_from_zero(self) -> None:
        fmt = CoordinateFormat(precision=2, round=True)
        assert fmt.text(1.125) == "1.13"
        assert fmt.text(-1.125) == "-1.13"

    def test_truncate_toward_zero(self) -> None:
        fmt = CoordinateFormat(precision=2, round=False)
        assert fmt.text(1.129) == "1.12"
        assert fmt.text(-1.129) == "-1.12"

    def test_zero_precision_and_negative_zero(self) -> None:
        assert CoordinateFormat(precision=0).text(2.5) == "3"
        assert CoordinateFormat(precision=2).text(-0.0) == "0.00"

    def test_large_values_keep_every_digit(self) -> None:
        fmt = CoordinateFormat(precision=2)
        assert fmt.text(1e30) == "1000000000000000019884624838656.00"
        text = fmt.text(-1e300)
        assert Decimal(text) == Decimal(-1e300)
        assert text.endswith(".00")
        assert fmt.text(sys.float_info.max).index(".") == 309

    @pytest.mark.parametrize("value,expected", [(math.inf, "inf"), (-math.inf, "-inf"), (math.nan, "nan")])
    def test_non_finite_values(self, value, expected) -> None:
        assert CoordinateFormat(precision=3).text(value) == expected

    def test_precision_bounds(self) -> None:
        with pytest.raises(ValueError):
            CoordinateFormat(precision=11)


class TestExportFormat:
    def test_from_key(self) -> None:
        assert ExportFormat.from_key("EXCEL") is ExportFormat.EXCEL
        assert ExportFormat.CSV.mime_type == "text/csv;charset=utf-8"
        assert ExportFormat.EXCEL.filename == "points.xls"

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown export format"):
            ExportFormat.from_key("pdf")


class TestJson:
    def test_groups_in_first_seen_order(self, points) -> None:
        grouped = Exporter().to_grouped_json(points)
        assert list(grouped) == ["b", "Unlabeled", "a"]
        assert [p["id"] for p in grouped["b"]] == [1, 4]

    def test_formatted_numbers(self, points) -> None:
        data = json.loads(Exporter(CoordinateFormat(2, True)).to_json(points))
        assert data["b"][0] == {"id": 1, "x": 1.13, "y": -1.13}

    def test_raw_floats_without_format(self, points) -> None:
        data = json.loads(Exporter().to_json(points))
        assert data["Unlabeled"] == [{"id": 2, "x": 2.0, "y": 3.5}]

    def test_custom_unlabeled_name(self, points) -> None:
        grouped = Exporter(unlabeled_name="(none)").to_grouped_json(points)
        assert "(none)" in grouped

    def test_unicode_kept(self) -> None:
        text = Exporter().to_json([point(1, "árbol")])
        assert "árbol" in text

    def test_empty(self) -> None:
        assert json.loads(Exporter().to_json([])) == {}


class TestXml:
    def test_structure(self, points) -> None:
        xml = Exporter(CoordinateFormat(2)).to_xml(points)
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<group label="Unlabeled">' in xml
        assert '<point id="1" x="1.13" y="-1.13" />' in xml
        assert '<point id="3" x="0.00" y="0.00" />' in xml

    def test_label_escaped(self) -> None:
        xml = Exporter().to_xml([point(1, 'a<b & "c"')])
        assert 'label="a&lt;b &amp; &quot;c&quot;"' in xml


class TestCsv:
    def test_header_and_rows(self, points) -> None:
        csv_text = Exporter(CoordinateFormat(2)).to_csv(points)
        lines = csv_text.split("\r\n")
        assert lines[0] == "id,label,x,y"
        assert lines[1] == '"1","b","1.13","-1.13"'
        assert lines[2] == '"2","","2.00","3.50"'
        assert csv_text.endswith("\r\n")

    def test_store_order_not_grouped(self, points) -> None:
        lines = Exporter().to_csv(points).split("\r\n")
        assert [line.split(",")[0] for line in lines[1:5]] == ['"1"', '"2"', '"3"', '"4"']

    def test_quotes_doubled(self) -> None:
        csv_text = Exporter().to_csv([point(7, 'say "hi", ok')])
        assert '"7","say ""hi"", ok"' in csv_text

    def test_reader_recovers_rows(self) -> None:
        tricky = [
            point(1, 'say "hi", ok', 1.25, -2.5),
            point(2, "line one\r\nline two", 0.0, 3.0),
            point(5, "", -7.75, 8.0),
            point(9, '",\r\n"', 100.5, 0.125),
        ]
        exporter = Exporter(CoordinateFormat(3))
        rows = list(csv.reader(io.StringIO(exporter.to_csv(tricky), newline="")))
        assert rows[0] == ["id", "label", "x", "y"]
        assert [tuple(r) for r in rows[1:]] == [
            (str(p.id), p.label, exporter.coord_text(p.real_x), exporter.coord_text(p.real_y))
            for p in tricky
        ]

    def test_huge_and_infinite_coordinates(self) -> None:
        csv_text = Exporter(CoordinateFormat(2)).to_csv([point(1, "far", 1e30, math.inf)])
        assert csv_text.endswith('"1","far","1000000000000000019884624838656.00","inf"\r\n')


class TestNonFiniteJson:
    def test_written_as_null(self) -> None:
        data = json.loads(Exporter(CoordinateFormat(2)).to_json([point(1, "a", math.nan, -math.inf)]))
        assert data == {"a": [{"id": 1, "x": None, "y": None}]}


class TestHtmlTable:
    def test_only_angle_brackets_escaped(self) -> None:
        html = Exporter().to_html_table([point(1, "<b> & co")])
        assert "<td>&lt;b&gt; & co</td>" in html
        assert html.count("<tr>") == 2

    def test_dispatch(self, points) -> None:
        exporter = Exporter(CoordinateFormat(1))
        assert exporter.export(ExportFormat.EXCEL, points) == exporter.to_html_table(points)
        assert exporter.export(ExportFormat.CSV, points) == exporter.to_csv(points)
        assert exporter.export(ExportFormat.XML, points) == exporter.to_xml(points)
        assert exporter.export(ExportFormat.JSON, points) == exporter.to_json(points)
