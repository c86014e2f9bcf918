"""Tests for the command line entry point."""

import json

import pytest

from recoverability.cli import (
    EXIT_ERROR,
    EXIT_HIGH_FINDINGS,
    EXIT_OK,
    main,
    parse_platforms,
)
from recoverability.schemas.results import Platform


class TestParsePlatforms:
    """Tests for platform argument parsing."""

    def test_repeated_and_comma_separated(self):
        assert parse_platforms(["azure,aws", "AHV", "Azure"]) == [
            Platform.AZURE,
            Platform.AWS,
            Platform.NUTANIX_AHV,
        ]

    def test_unknown_platform(self):
        with pytest.raises(ValueError, match="Invalid platform 'Mainframe'"):
            parse_platforms(["Mainframe"])


class TestMain:
    """Tests for exit codes and output."""

    def test_text_report(self, manual_csv, tmp_path, capsys):
        """Test a completed assessment exits 0 and writes exports."""
        code = main(["--csv", str(manual_csv), "--output-dir", str(tmp_path / "out")])

        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert "RECOVERABILITY POSTURE: Default" in out
        assert "[High] 1 recovery test failed" in out
        assert list((tmp_path / "out").glob("RecoveryResults_*.csv"))

    def test_fail_on_high(self, manual_csv):
        """Test High findings fail the run when requested."""
        code = main(["--csv", str(manual_csv), "--no-export", "--fail-on-high"])

        assert code == EXIT_HIGH_FINDINGS

    def test_json_format(self, manual_csv, capsys):
        """Test the JSON report is printed to stdout."""
        code = main([
            "--csv", str(manual_csv),
            "--no-export",
            "--format", "json",
            "--organization", "Contoso",
            "--sla-platform", "Azure,AWS",
        ])

        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["organization"] == "Contoso"
        assert data["summary"]["total_tests"] == 3

    def test_snapshot_dir_tracks_trend(self, manual_csv, tmp_path, capsys):
        """Test a second run against the same history prints the delta."""
        args = ["--csv", str(manual_csv), "--no-export", "--snapshot-dir", str(tmp_path / "history")]

        main(args)
        first = capsys.readouterr().out
        main(args)
        second = capsys.readouterr().out

        assert "Trend: baseline" in first
        assert "pass_rate" in second
        assert "(+0)" in second

    def test_no_sources(self, capsys):
        """Test running without any source is an error."""
        assert main(["--no-export"]) == EXIT_ERROR
        assert "no result sources given" in capsys.readouterr().err

    def test_nothing_ingested(self, tmp_path, capsys):
        """Test sources that yield nothing exit with an error and list skips."""
        code = main(["--csv", str(tmp_path / "missing.csv"), "--no-export"])

        assert code == EXIT_ERROR
        err = capsys.readouterr().err
        assert "No recovery validation results were ingested" in err
        assert "file does not exist" in err

    def test_invalid_platform(self, manual_csv, capsys):
        code = main(["--csv", str(manual_csv), "--sla-platform", "Mainframe"])

        assert code == EXIT_ERROR
        assert "Invalid platform" in capsys.readouterr().err
