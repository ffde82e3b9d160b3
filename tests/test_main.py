"""Tests for the CLI entry point (tableprep/main.py)."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from tableprep.main import main, parse_args


SAMPLE_CSV = "Name,Age,Bought\nAlice,30,yes\nBob,25,no\nBob,25,no\nCarol,41,yes\n"


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text(SAMPLE_CSV)
    return path


# ---------------------------------------------------------------------------
# parse_args tests
# ---------------------------------------------------------------------------


class TestParseArgs:
    """Unit tests for CLI argument parsing."""

    def test_positional_input_file(self):
        args = parse_args(["data.csv"])
        assert args.input_file == "data.csv"

    def test_defaults(self):
        args = parse_args(["data.csv"])
        assert args.config is None
        assert args.target is None
        assert args.output_dir == "output"
        assert args.verbose is False

    def test_all_flags_combined(self):
        args = parse_args([
            "input.json",
            "--config", "pipeline.json",
            "--target", "label",
            "--output-dir", "results",
            "--verbose",
        ])
        assert args.input_file == "input.json"
        assert args.config == "pipeline.json"
        assert args.target == "label"
        assert args.output_dir == "results"
        assert args.verbose is True

    def test_missing_input_file_rejected(self):
        with pytest.raises(SystemExit):
            parse_args([])


# ---------------------------------------------------------------------------
# main() tests
# ---------------------------------------------------------------------------


class TestMain:
    """Unit tests for the main() entry point."""

    def test_nonexistent_file_exits(self):
        """main() should exit with code 1 when the input file doesn't exist."""
        with pytest.raises(SystemExit) as exc_info:
            main(["nonexistent_file_abc123.csv"])
        assert exc_info.value.code == 1

    def test_successful_run_writes_artifacts(self, csv_file, tmp_path, capsys):
        output_dir = tmp_path / "output"
        main([str(csv_file), "--output-dir", str(output_dir)])

        cleaned = output_dir / "cleaned_people.csv"
        assert cleaned.is_file()
        lines = cleaned.read_text().split("\n")
        assert lines[0] == "name,age,bought"
        assert len(lines) == 4
        assert (output_dir / "audit_report.md").is_file()
        assert (output_dir / "pipeline_config.json").is_file()

        out = capsys.readouterr().out
        assert f"Cleaned data saved to: {cleaned}" in out
        assert "ML readiness score:" in out

    def test_target_flag_maps_to_normalized_name(self, csv_file, tmp_path):
        output_dir = tmp_path / "out"
        main([str(csv_file), "--target", "Bought", "--output-dir", str(output_dir)])
        pipeline = json.loads((output_dir / "pipeline_config.json").read_text())
        assert pipeline["targetColumn"] == "bought"
        assert pipeline["steps"][0]["operation"] == "Normalize Column Names"

    def test_config_file(self, csv_file, tmp_path):
        config_file = tmp_path / "pipeline.json"
        config_file.write_text(json.dumps({"removeDuplicates": False}))
        output_dir = tmp_path / "out"
        main([str(csv_file), "--config", str(config_file), "--output-dir", str(output_dir)])
        lines = (output_dir / "cleaned_people.csv").read_text().split("\n")
        assert len(lines) == 5

    def test_invalid_config_exits(self, csv_file, tmp_path, capsys):
        config_file = tmp_path / "pipeline.json"
        config_file.write_text(json.dumps({"missingStrategy": "guess"}))
        with pytest.raises(SystemExit) as exc_info:
            main([str(csv_file), "--config", str(config_file)])
        assert exc_info.value.code == 1
        assert "Invalid PipelineConfiguration.missingStrategy 'guess'" in capsys.readouterr().err

    def test_load_error_exits(self, tmp_path, capsys):
        empty = tmp_path / "empty.csv"
        empty.write_text("")
        with pytest.raises(SystemExit) as exc_info:
            main([str(empty), "--output-dir", str(tmp_path / "out")])
        assert exc_info.value.code == 1
        assert "Error: File is empty" in capsys.readouterr().err

    def test_failed_stage_exits_after_writing(self, csv_file, tmp_path):
        output_dir = tmp_path / "out"
        with patch("tableprep.pipeline.remove_duplicates", side_effect=RuntimeError("boom")):
            with pytest.raises(SystemExit) as exc_info:
                main([str(csv_file), "--output-dir", str(output_dir)])
        assert exc_info.value.code == 1
        assert (output_dir / "audit_report.md").is_file()
        report = (output_dir / "audit_report.md").read_text()
        assert "Pipeline Error" in report

    def test_keyboard_interrupt_exits_130(self, csv_file, tmp_path):
        with patch("tableprep.pipeline.run_pipeline", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                main([str(csv_file), "--output-dir", str(tmp_path / "out")])
        assert exc_info.value.code == 130

    def test_exception_in_pipeline_exits(self, csv_file, tmp_path):
        """main() should catch unexpected exceptions and exit with code 1."""
        with patch("tableprep.pipeline.run_pipeline", side_effect=RuntimeError("boom")):
            with pytest.raises(SystemExit) as exc_info:
                main([str(csv_file), "--output-dir", str(tmp_path / "out")])
        assert exc_info.value.code == 1
