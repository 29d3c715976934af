"""Tests for the rule set consistency validator."""

from collections.abc import Callable

import pytest

from dansbag.rules.models import Outcome, RuleSet
from dansbag.rules.validator import (
    ConfigurationError,
    ViolationKind,
    find_violations,
    validate_rule_set,
)


def ok(target: object) -> Outcome:
    return Outcome.satisfied()


class TestConsistencyValidator:
    """Rule sets with configuration bugs are rejected before any run."""

    def test_well_formed_rule_set_passes(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that an acyclic set without dangling references passes."""
        rule_set = make_rule_set(
            ("1", ok, []),
            ("2", ok, ["1"]),
            ("3", ok, ["1", "2"]),
            ("4", ok, []),
        )

        assert find_violations(rule_set) == []
        validate_rule_set(rule_set)

    def test_duplicate_number_rejected(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that two rules sharing a number are rejected."""
        rule_set = make_rule_set(("X", ok, []), ("X", ok, []))

        with pytest.raises(ConfigurationError) as exc_info:
            validate_rule_set(rule_set)

        (violation,) = exc_info.value.violations
        assert violation.kind is ViolationKind.DUPLICATE_NUMBER
        assert violation.numbers == ("X",)
        assert "declared 2 times" in violation.message

    def test_dangling_prerequisite_rejected(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that a reference to an undeclared rule is rejected."""
        rule_set = make_rule_set(("A", ok, ["Y"]))

        with pytest.raises(ConfigurationError) as exc_info:
            validate_rule_set(rule_set)

        (violation,) = exc_info.value.violations
        assert violation.kind is ViolationKind.DANGLING_PREREQUISITE
        assert violation.numbers == ("A", "Y")

    def test_cycle_rejected(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that A -> B -> A is rejected with the cycle path."""
        rule_set = make_rule_set(("A", ok, ["B"]), ("B", ok, ["A"]))

        with pytest.raises(ConfigurationError) as exc_info:
            validate_rule_set(rule_set)

        (violation,) = exc_info.value.violations
        assert violation.kind is ViolationKind.CYCLE
        assert violation.numbers == ("A", "B", "A")
        assert violation.message == "Dependency cycle: A -> B -> A"

    def test_self_dependency_is_a_cycle(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that a rule depending on itself is rejected."""
        violations = find_violations(make_rule_set(("A", ok, ["A"])))

        assert [(v.kind, v.numbers) for v in violations] == [(ViolationKind.CYCLE, ("A", "A"))]

    def test_longer_cycle_behind_valid_rules(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that a cycle reachable only through acyclic rules is found."""
        rule_set = make_rule_set(
            ("root", ok, []),
            ("entry", ok, ["c1", "root"]),
            ("c1", ok, ["c2"]),
            ("c2", ok, ["c3"]),
            ("c3", ok, ["c1"]),
        )

        (violation,) = find_violations(rule_set)
        assert violation.kind is ViolationKind.CYCLE
        assert violation.numbers == ("c1", "c2", "c3", "c1")

    def test_all_violations_collected(self, make_rule_set: Callable[..., RuleSet]) -> None:
        """Test that every problem is reported, in check order."""
        rule_set = make_rule_set(
            ("A", ok, ["B"]),
            ("B", ok, ["A"]),
            ("C", ok, ["missing"]),
            ("C", ok, []),
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_rule_set(rule_set)

        kinds = [v.kind for v in exc_info.value.violations]
        assert kinds == [
            ViolationKind.DUPLICATE_NUMBER,
            ViolationKind.DANGLING_PREREQUISITE,
            ViolationKind.CYCLE,
        ]
        assert "3 problem(s)" in str(exc_info.value)

    def test_prerequisite_across_applicability_is_not_dangling(
        self, make_rule_set: Callable[..., RuleSet]
    ) -> None:
        """Test that integrity is checked against the whole rule set, not one mode."""
        from dansbag.rules.models import Applicability

        rule_set = make_rule_set(
            ("1", ok, [], Applicability.DEPOSIT_ONLY),
            ("2", ok, ["1"], Applicability.MIGRATION_ONLY),
        )

        assert find_violations(rule_set) == []
