"""Tests for CLI formatting utilities."""

import json

from canvasshot.cli._format import (
    SCHEMA_VERSION,
    format_bbox,
    format_number,
    json_envelope,
    print_json,
    print_lines,
    print_table,
)
from canvasshot.geometry import BBox


class TestFormatGeometry:
    def test_number(self):
        assert format_number(12.0) == "12"
        assert format_number(0.25) == "0.25"
        assert format_number(-12.5) == "-12.5"

    def test_bbox(self):
        assert format_bbox(BBox(-20, -12.5, 420, 262.5)) == "(-20, -12.5) → (420, 262.5)  440×275"


class TestJsonEnvelope:
    def test_structure(self):
        env = json_envelope("inspect", {"nodes": []})
        assert env["schema_version"] == SCHEMA_VERSION
        assert env["command"] == "inspect"
        assert env["data"] == {"nodes": []}
        assert "generated_at" in env

    def test_print_to_file(self, tmp_path, capsys):
        target = tmp_path / "out.json"
        print_json("export", {"status": "completed"}, str(target))
        assert json.loads(target.read_text())["data"] == {"status": "completed"}
        assert "Wrote export output" in capsys.readouterr().out


class TestPrintTable:
    def test_basic(self):
        lines = print_table(["Node", "Type"], [["A", "text"], ["img", "file"]])
        assert len(lines) == 4  # header + separator + 2 rows
        assert "Node" in lines[0]
        assert "─" in lines[1]
        assert lines[3].strip().startswith("img")

    def test_empty_rows(self):
        assert print_table(["A", "B"], []) == []

    def test_truncation(self, capsys):
        print_lines([f"line {i}" for i in range(5)], max_lines=2)
        out = capsys.readouterr().out
        assert "line 1" in out
        assert "line 2" not in out
        assert "3 more lines" in out
