"""Command-line bag validation.

Usage:
    validate-bag path/to/bag                      # deposit profile variant
    validate-bag path/to/bag --type migration     # migration variant
    validate-bag path/to/bag --json               # full report as JSON
    validate-bag --check-profile                  # only check the profile

Exit codes: 0 compliant, 1 not compliant, 2 bag or profile unusable.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from dansbag.core.config import settings
from dansbag.core.logging import setup_logging
from dansbag.rules.engine import RuleEngine
from dansbag.rules.loader import ProfileError, ProfileLoader, build_rule_set
from dansbag.rules.models import DepositType
from dansbag.rules.report import Classification, Report
from dansbag.rules.validator import ConfigurationError, validate_rule_set
from dansbag.services.validation import BagNotFoundError, ValidationService

EXIT_COMPLIANT = 0
EXIT_NOT_COMPLIANT = 1
EXIT_ERROR = 2

STATUS_LABELS = {
    Classification.SATISFIED: "OK",
    Classification.VIOLATED: "FAIL",
    Classification.INAPPLICABLE: "N/A",
    Classification.SKIPPED: "SKIP",
    Classification.OUT_OF_SCOPE: "-",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate a bag against the DANS BagIt profile")
    parser.add_argument("bag", nargs="?", type=Path, help="Bag directory")
    parser.add_argument(
        "--type",
        dest="deposit_type",
        choices=[t.value for t in DepositType],
        default=DepositType.DEPOSIT.value,
        help="Profile variant to validate against",
    )
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Profile YAML file (defaults to the configured profile)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.engine_max_workers,
        help="Number of rules evaluated concurrently",
    )
    parser.add_argument(
        "--check-profile",
        action="store_true",
        help="Only check that the profile's rules are consistent",
    )
    return parser


def format_report(report: Report) -> str:
    """Clause-numbered, human readable report."""
    lines = [
        f"{report.rule_set_name} v{report.rule_set_version} ({report.deposit_type.value})",
        "",
    ]
    for entry in report.entries:
        line = f"  [{STATUS_LABELS[entry.classification]:>4}] {entry.number}"
        if entry.reason:
            line += f" ({entry.reason})"
        lines.append(line)
        lines.extend(f"           {message}" for message in entry.messages)

    counts = ", ".join(f"{c.value}: {n}" for c, n in report.counts().items())
    lines.append("")
    lines.append(f"Compliant: {'yes' if report.is_compliant else 'no'} ({counts})")
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.bag is None and not args.check_profile:
        parser.error("a bag directory is required unless --check-profile is given")

    setup_logging(stream=sys.stderr)

    if args.profile is not None:
        loader = ProfileLoader(args.profile.parent)
        filename = args.profile.name
    else:
        loader = ProfileLoader(settings.profiles_dir)
        filename = settings.profile_filename

    try:
        profile, _ = loader.load(filename)
        rule_set = build_rule_set(profile)
        validate_rule_set(rule_set)
    except (FileNotFoundError, ProfileError, ConfigurationError) as e:
        print(f"Profile {filename} is not usable: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.check_profile:
        print(f"Profile {rule_set.name} v{rule_set.version} is consistent ({len(rule_set)} rules)")
        return EXIT_COMPLIANT

    try:
        engine = RuleEngine(max_workers=args.workers, timeout=settings.engine_timeout_seconds)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_ERROR

    service = ValidationService(rule_set, engine=engine)
    deposit_type = DepositType(args.deposit_type)
    try:
        report = service.run(args.bag, deposit_type)
    except BagNotFoundError as e:
        print(str(e), file=sys.stderr)
        return EXIT_ERROR

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_report(report))

    return EXIT_COMPLIANT if report.is_compliant else EXIT_NOT_COMPLIANT


if __name__ == "__main__":
    sys.exit(main())
