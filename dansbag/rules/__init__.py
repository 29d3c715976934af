"""Dependency-aware rule engine for the DANS BagIt profile.

Rules are numbered profile clauses with prerequisites and an optional
deposit-type restriction. The engine runs them in dependency order,
propagates skips to dependents and reports one classification per clause.

Profiles are loaded with `dansbag.rules.loader`, which pulls in the check
library and is therefore not imported here.
"""

from dansbag.rules.models import (
    Applicability,
    Check,
    DepositType,
    Outcome,
    OutcomeStatus,
    Rule,
    RuleSet,
)
from dansbag.rules.report import Classification, Report, ReportEntry, RuleTrace
from dansbag.rules.validator import (
    ConfigurationError,
    ConfigurationViolation,
    ViolationKind,
    find_violations,
    validate_rule_set,
)
from dansbag.rules.graph import DependencyGraph
from dansbag.rules.engine import RuleEngine, run_rules

__all__ = [
    "Applicability",
    "Check",
    "DepositType",
    "Outcome",
    "OutcomeStatus",
    "Rule",
    "RuleSet",
    "Classification",
    "Report",
    "ReportEntry",
    "RuleTrace",
    "ConfigurationError",
    "ConfigurationViolation",
    "ViolationKind",
    "find_violations",
    "validate_rule_set",
    "DependencyGraph",
    "RuleEngine",
    "run_rules",
]
