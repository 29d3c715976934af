"""Tests for the validation service against the shipped profile."""

import io
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from dansbag.core.config import settings
from dansbag.rules.engine import RuleEngine
from dansbag.rules.loader import ProfileLoader
from dansbag.rules.models import DepositType, Outcome, Rule, RuleSet
from dansbag.rules.report import Classification
from dansbag.rules.validator import ConfigurationError
from dansbag.services.validation import BagNotFoundError, ValidationService


def zip_directory(directory: Path, prefix: str | None = None) -> bytes:
    """Zip a directory with its name (or `prefix`) as top-level folder."""
    buffer = io.BytesIO()
    top = prefix or directory.name
    with zipfile.ZipFile(buffer, "w") as zf:
        for path in sorted(directory.rglob("*")):
            if path.is_file():
                zf.write(path, f"{top}/{path.relative_to(directory).as_posix()}")
    return buffer.getvalue()


@pytest.fixture(scope="module")
def service() -> ValidationService:
    """Service for the default shipped profile."""
    rule_set = ProfileLoader().rule_set(settings.profile_filename)
    return ValidationService(rule_set, engine=RuleEngine())


class TestValidationService:
    """Validating bags on disk."""

    def test_compliant_deposit(self, service: ValidationService, bag_dir: Path) -> None:
        """Test that the reference bag complies with the deposit variant."""
        result = service.validate_bag(bag_dir, DepositType.DEPOSIT)

        assert result.is_compliant, result.rule_violations
        assert result.rule_violations == []
        assert result.name == bag_dir.name
        assert result.bag_location == str(bag_dir)
        assert result.profile_version == "1.0.0"
        assert result.information_package_type is DepositType.DEPOSIT

        statuses = {e["rule"]: e["status"] for e in result.report["entries"]}
        assert statuses["1.1.1"] == "satisfied"
        assert statuses["1.2.3(a)"] == "inapplicable"
        assert statuses["1.2.3(b)"] == "skipped"
        assert statuses["2.2-MIGRATION"] == "out_of_scope"
        assert statuses["3.2.2"] == "satisfied"
        assert statuses["3.2.3"] == "satisfied"
        assert statuses["3.3.2"] == "skipped"
        assert statuses["5.2(a)"] == "satisfied"

    def test_compliant_migration(self, service: ValidationService, bag_dir: Path) -> None:
        """Test that deposit-only rules are out of scope for migrations."""
        result = service.validate_bag(bag_dir, DepositType.MIGRATION)

        statuses = {e["rule"]: e["status"] for e in result.report["entries"]}
        assert result.is_compliant
        assert statuses["2.3"] == "out_of_scope"
        assert statuses["2.2-MIGRATION"] == "satisfied"
        assert statuses["3.4.2-MIGRATION"] == "inapplicable"

    def test_report_covers_every_rule(self, service: ValidationService, bag_dir: Path) -> None:
        """Test one report entry per declared rule, in declaration order."""
        result = service.validate_bag(bag_dir)

        rule_set = service.rule_set_for(DepositType.DEPOSIT)
        assert [e["rule"] for e in result.report["entries"]] == rule_set.numbers()

    def test_missing_metadata_dir_skips_dependents(
        self, service: ValidationService, make_bag: Callable[..., Path]
    ) -> None:
        """Test that a missing metadata directory skips all metadata rules."""
        bag = make_bag(files={"metadata/dataset.xml": None, "metadata/files.xml": None})

        report = service.run(bag, DepositType.DEPOSIT)

        assert report.classification_of("2.1") is Classification.VIOLATED
        for number in ("2.2(a)", "2.2(b)", "2.3", "3.1.1", "3.1.6", "3.1.7", "3.2.1", "5.2(a)"):
            assert report.classification_of(number) is Classification.SKIPPED
        assert [e.number for e in report.violations()] == ["2.1"]

    def test_violation_messages(self, service: ValidationService, make_bag: Callable[..., Path]) -> None:
        """Test that violations are summarised per rule."""
        bag = make_bag(files={
            "bag-info.txt": "Created: yesterday\n",
            "metadata/notes.txt": "not allowed",
        })

        result = service.validate_bag(bag)

        assert not result.is_compliant
        violations = {v.rule: v.violation for v in result.rule_violations}
        assert violations["1.2.2(b)"] == "Date 'yesterday' is not valid"
        assert "notes.txt" in violations["2.3"]

    def test_bag_not_found(self, service: ValidationService, tmp_path: Path) -> None:
        """Test that a missing bag is an error, not a report."""
        with pytest.raises(BagNotFoundError):
            service.validate_bag(tmp_path / "missing")

    def test_file_is_not_a_bag(self, service: ValidationService, tmp_path: Path) -> None:
        """Test that a regular file is not accepted as a bag."""
        path = tmp_path / "bag.zip"
        path.write_bytes(b"PK")

        with pytest.raises(BagNotFoundError):
            service.validate_bag(path)


class TestValidateZip:
    """Validating zipped bags."""

    def test_zip_bag(self, service: ValidationService, bag_dir: Path) -> None:
        """Test that a zipped bag is extracted and validated."""
        result = service.validate_zip(zip_directory(bag_dir, "my-bag"))

        assert result.is_compliant
        assert result.name == "my-bag"
        assert result.bag_location is None

    def test_macos_resource_folder_ignored(self, service: ValidationService, bag_dir: Path) -> None:
        """Test that __MACOSX and hidden folders are not taken for the bag."""
        buffer = io.BytesIO(zip_directory(bag_dir, "bag"))
        with zipfile.ZipFile(buffer, "a") as zf:
            zf.writestr("__MACOSX/bag/._bagit.txt", b"\x00\x05\x16\x07")
            zf.writestr(".hidden/notes.txt", "x")

        result = service.validate_zip(buffer.getvalue())

        assert result.name == "bag"
        assert result.is_compliant, result.rule_violations

    def test_not_a_zip(self, service: ValidationService) -> None:
        """Test that arbitrary bytes are rejected."""
        with pytest.raises(BagNotFoundError, match="not a valid zip"):
            service.validate_zip(b"definitely not a zip")

    def test_zip_without_directory(self, service: ValidationService) -> None:
        """Test that a zip with only top-level files is rejected."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("bagit.txt", "BagIt-Version: 1.0\n")

        with pytest.raises(BagNotFoundError, match="does not contain a directory"):
            service.validate_zip(buffer.getvalue())

    def test_path_traversal_rejected(self, service: ValidationService) -> None:
        """Test that entries escaping the extraction directory are rejected."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("bag/bagit.txt", "BagIt-Version: 1.0\n")
            zf.writestr("../escape.txt", "gotcha")

        with pytest.raises(BagNotFoundError, match="outside the extraction directory"):
            service.validate_zip(buffer.getvalue())

    def test_temporary_directory_removed(
        self,
        service: ValidationService,
        bag_dir: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that extraction directories are cleaned up, even on errors."""
        import tempfile

        workdirs = tmp_path / "work"
        workdirs.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(workdirs))

        service.validate_zip(zip_directory(bag_dir))
        with pytest.raises(BagNotFoundError):
            service.validate_zip(b"nope")

        assert list(workdirs.iterdir()) == []


class TestServiceConfiguration:
    """Rule sets are checked when the service is created."""

    def test_inconsistent_rule_set_rejected(self) -> None:
        """Test that a cyclic rule set cannot be used."""
        def check(target: object) -> Outcome:
            return Outcome.satisfied()

        rule_set = RuleSet([Rule("a", check, prerequisites=("b",)), Rule("b", check, prerequisites=("a",))])

        with pytest.raises(ConfigurationError):
            ValidationService(rule_set)

    def test_rule_set_per_deposit_type(self, bag_dir: Path) -> None:
        """Test that each deposit type can have its own rule set."""
        def ok(target: object) -> Outcome:
            return Outcome.satisfied()

        def fail(target: object) -> Outcome:
            return Outcome.violated("migration says no")

        service = ValidationService({
            DepositType.DEPOSIT: RuleSet([Rule("1", ok)], version="d"),
            DepositType.MIGRATION: RuleSet([Rule("1", fail)], version="m"),
        })

        assert service.validate_bag(bag_dir, DepositType.DEPOSIT).is_compliant
        migration = service.validate_bag(bag_dir, DepositType.MIGRATION)
        assert migration.profile_version == "m"
        assert migration.rule_violations[0].violation == "migration says no"
