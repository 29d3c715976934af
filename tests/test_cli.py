"""Tests for the command-line entry point."""

import json
from pathlib import Path

import pytest

from dansbag.cli import EXIT_COMPLIANT, EXIT_ERROR, EXIT_NOT_COMPLIANT, main


class TestValidateBagCli:
    """validate-bag exit codes and output."""

    def test_compliant_bag(self, bag_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the human readable report of a compliant bag."""
        exit_code = main([str(bag_dir)])

        out = capsys.readouterr().out
        assert exit_code == EXIT_COMPLIANT
        assert "[  OK] 1.1.1" in out
        assert "Compliant: yes" in out

    def test_non_compliant_bag_json(self, bag_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON output and exit code for a violated profile."""
        (bag_dir / "bag-info.txt").unlink()

        exit_code = main([str(bag_dir), "--type", "migration", "--json"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == EXIT_NOT_COMPLIANT
        assert report["deposit_type"] == "migration"
        entries = {e["rule"]: e for e in report["entries"]}
        assert entries["1.2.1"]["messages"] == ["bag-info.txt does not exist"]
        assert entries["1.2.2(a)"]["status"] == "skipped"

    def test_parallel_workers(self, bag_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a multi-threaded run gives the same verdict."""
        assert main([str(bag_dir), "--workers", "4"]) == EXIT_COMPLIANT

    def test_missing_bag(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a missing bag exits with an error code."""
        exit_code = main([str(tmp_path / "missing")])

        assert exit_code == EXIT_ERROR
        assert "could not be found" in capsys.readouterr().err

    def test_check_profile(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test checking the shipped profile only."""
        exit_code = main(["--check-profile"])

        assert exit_code == EXIT_COMPLIANT
        assert "is consistent" in capsys.readouterr().out

    def test_inconsistent_profile(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a cyclic profile is reported and rejected."""
        profile = tmp_path / "broken.yaml"
        profile.write_text(
            "id: broken\n"
            "version: 1\n"
            "rules:\n"
            "  - {number: a, check: bag_is_valid, prerequisites: [b]}\n"
            "  - {number: b, check: bag_is_valid, prerequisites: [a]}\n",
            encoding="utf-8",
        )

        exit_code = main(["--check-profile", "--profile", str(profile)])

        assert exit_code == EXIT_ERROR
        assert "Dependency cycle: a -> b -> a" in capsys.readouterr().err

    def test_bag_required(self) -> None:
        """Test that a bag argument is required for validation."""
        with pytest.raises(SystemExit):
            main([])
