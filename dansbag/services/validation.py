"""Validation service.

Validates bags on disk or delivered as zip archives against the configured
rule sets and turns the engine report into a `ValidationResult`.
"""

import io
import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Optional, Union

from dansbag.core.config import settings
from dansbag.rules.engine import RuleEngine
from dansbag.rules.models import DepositType, RuleSet
from dansbag.rules.report import Report
from dansbag.rules.validator import validate_rule_set
from dansbag.schemas.validation import RuleViolation, ValidationResult
from dansbag.services.documents import BagTarget

logger = logging.getLogger(__name__)


class BagNotFoundError(Exception):
    """The bag to validate does not exist or cannot be read."""

    pass


class ValidationService:
    """Runs rule sets against bags.

    Args:
        rule_sets: One rule set for all deposit types, or one per deposit type
        engine: Engine to run with (defaults to one configured from settings)

    Raises:
        ConfigurationError: If a rule set is not consistent
    """

    def __init__(
        self,
        rule_sets: Union[RuleSet, dict[DepositType, RuleSet]],
        engine: Optional[RuleEngine] = None,
    ) -> None:
        if isinstance(rule_sets, RuleSet):
            rule_sets = {deposit_type: rule_sets for deposit_type in DepositType}
        self.rule_sets = dict(rule_sets)

        checked: set[int] = set()
        for rule_set in self.rule_sets.values():
            if id(rule_set) not in checked:
                validate_rule_set(rule_set)
                checked.add(id(rule_set))

        self.engine = engine or RuleEngine(
            max_workers=settings.engine_max_workers,
            timeout=settings.engine_timeout_seconds,
        )

    def rule_set_for(self, deposit_type: DepositType) -> RuleSet:
        try:
            return self.rule_sets[deposit_type]
        except KeyError:
            raise ValueError(f"No rule set configured for {deposit_type.value} deposits") from None

    def run(self, path: Union[str, Path], deposit_type: DepositType) -> Report:
        """Run the rule set for `deposit_type` against a bag directory.

        Raises:
            BagNotFoundError: If `path` is not an existing, readable directory
        """
        bag_path = Path(path)
        if not bag_path.is_dir():
            raise BagNotFoundError(f"Bag on path '{bag_path}' could not be found or read")
        try:
            next(bag_path.iterdir(), None)
        except OSError as e:
            raise BagNotFoundError(f"Bag on path '{bag_path}' could not be read: {e}") from e

        logger.info(
            f"Validating bag on path {bag_path}, deposit type is {deposit_type.value}",
            extra={"bag": str(bag_path), "deposit_type": deposit_type.value},
        )
        report = self.engine.run(self.rule_set_for(deposit_type), BagTarget.open(bag_path), deposit_type)

        counts = {c.value: n for c, n in report.counts().items()}
        logger.info(
            f"Validated bag {bag_path.name}: compliant={report.is_compliant} {counts}",
            extra={"bag": str(bag_path), "deposit_type": deposit_type.value},
        )
        return report

    def validate_bag(
        self,
        path: Union[str, Path],
        deposit_type: DepositType = DepositType.DEPOSIT,
    ) -> ValidationResult:
        """Validate a bag directory.

        Args:
            path: Bag directory
            deposit_type: Profile variant to validate against

        Returns:
            ValidationResult

        Raises:
            BagNotFoundError: If the bag does not exist or cannot be read
        """
        bag_path = Path(path)
        report = self.run(bag_path, deposit_type)
        return to_validation_result(report, name=bag_path.name, bag_location=str(path))

    def validate_zip(
        self,
        archive: Union[bytes, BinaryIO],
        deposit_type: DepositType = DepositType.DEPOSIT,
    ) -> ValidationResult:
        """Validate a bag delivered as a zip archive.

        The archive is extracted into a temporary directory that is removed
        afterwards; the first directory found at its top level is the bag.

        Raises:
            BagNotFoundError: If the archive is not a zip, escapes the
                extraction directory or contains no directory
        """
        if isinstance(archive, (bytes, bytearray)):
            archive = io.BytesIO(archive)

        workdir = Path(tempfile.mkdtemp(prefix="dansbag-"))
        try:
            bag_path = extract_bag(archive, workdir)
            report = self.run(bag_path, deposit_type)
            return to_validation_result(report, name=bag_path.name, bag_location=None)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)


def extract_bag(archive: BinaryIO, destination: Path) -> Path:
    """Extract a zip archive and return the first top-level directory.

    Raises:
        BagNotFoundError: See `ValidationService.validate_zip`
    """
    root = destination.resolve()
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                target = (root / member).resolve()
                if target != root and root not in target.parents:
                    raise BagNotFoundError(f"Zip entry '{member}' points outside the extraction directory")
            zf.extractall(root)
    except zipfile.BadZipFile as e:
        raise BagNotFoundError(f"Uploaded content is not a valid zip archive: {e}") from e

    # macOS archivers add a __MACOSX resource-fork folder next to the bag
    directories = sorted(
        p for p in root.iterdir()
        if p.is_dir() and p.name != "__MACOSX" and not p.name.startswith(".")
    )
    if not directories:
        raise BagNotFoundError("Extracted zip does not contain a directory")
    return directories[0]


def to_validation_result(
    report: Report,
    name: Optional[str],
    bag_location: Optional[str],
) -> ValidationResult:
    """Summarise a report the way the HTTP and CLI surfaces present it."""
    return ValidationResult(
        bag_location=bag_location,
        name=name,
        profile_version=report.rule_set_version,
        information_package_type=report.deposit_type,
        is_compliant=report.is_compliant,
        rule_violations=[
            RuleViolation(rule=entry.number, violation="\n".join(entry.messages))
            for entry in report.violations()
        ],
        report=report.to_dict(),
    )
