"""Static consistency checks for rule sets.

Runs over rule numbers and prerequisite references only; no bag is
involved. A rule set that fails these checks is a configuration bug and
must be rejected before any bag is accepted for validation.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from dansbag.rules.models import RuleSet

logger = logging.getLogger(__name__)

# DFS markers
_WHITE, _GREY, _BLACK = 0, 1, 2


class ViolationKind(str, Enum):
    """Kinds of rule set configuration problems."""
    DUPLICATE_NUMBER = "duplicate_number"
    DANGLING_PREREQUISITE = "dangling_prerequisite"
    CYCLE = "cycle"


@dataclass(frozen=True)
class ConfigurationViolation:
    """A single configuration problem, with the rule numbers involved."""
    kind: ViolationKind
    numbers: tuple[str, ...]
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ConfigurationError(Exception):
    """Raised when a rule set is internally inconsistent."""

    def __init__(self, violations: list[ConfigurationViolation]) -> None:
        self.violations = list(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(
            f"Rule configuration is not valid ({len(self.violations)} problem(s)):\n{lines}"
        )


def _duplicate_numbers(rule_set: RuleSet) -> list[ConfigurationViolation]:
    seen: dict[str, int] = {}
    for number in rule_set.numbers():
        seen[number] = seen.get(number, 0) + 1

    return [
        ConfigurationViolation(
            kind=ViolationKind.DUPLICATE_NUMBER,
            numbers=(number,),
            message=f"Rule number '{number}' is declared {count} times",
        )
        for number, count in seen.items()
        if count > 1
    ]


def _dangling_prerequisites(rule_set: RuleSet) -> list[ConfigurationViolation]:
    violations = []
    for rule in rule_set:
        for prerequisite in rule.prerequisites:
            if prerequisite not in rule_set:
                violations.append(ConfigurationViolation(
                    kind=ViolationKind.DANGLING_PREREQUISITE,
                    numbers=(rule.number, prerequisite),
                    message=(
                        f"Rule '{rule.number}' depends on '{prerequisite}', "
                        "which is not declared"
                    ),
                ))
    return violations


def _cycles(rule_set: RuleSet) -> list[ConfigurationViolation]:
    """Find dependency cycles with an iterative three-colour DFS.

    Edges point from a rule to its prerequisites. Dangling references are
    ignored here; they are reported separately. Each cycle is reported once,
    as the path from its first visited member back to itself.
    """
    color = {number: _WHITE for number in rule_set.numbers()}
    violations = []

    for start in rule_set.numbers():
        if color[start] != _WHITE:
            continue

        path: list[str] = [start]
        stack = [iter(rule_set.get(start).prerequisites)]
        color[start] = _GREY

        while stack:
            advanced = False
            for prerequisite in stack[-1]:
                if prerequisite not in color:
                    continue
                if color[prerequisite] == _GREY:
                    cycle = path[path.index(prerequisite):] + [prerequisite]
                    violations.append(ConfigurationViolation(
                        kind=ViolationKind.CYCLE,
                        numbers=tuple(cycle),
                        message="Dependency cycle: " + " -> ".join(cycle),
                    ))
                elif color[prerequisite] == _WHITE:
                    color[prerequisite] = _GREY
                    path.append(prerequisite)
                    stack.append(iter(rule_set.get(prerequisite).prerequisites))
                    advanced = True
                    break

            if not advanced:
                color[path.pop()] = _BLACK
                stack.pop()

    return violations


def find_violations(rule_set: RuleSet) -> list[ConfigurationViolation]:
    """Collect every configuration problem in a rule set.

    Checks run in a fixed order: uniqueness, referential integrity,
    acyclicity. All problems are collected rather than stopping at the
    first one.
    """
    return (
        _duplicate_numbers(rule_set)
        + _dangling_prerequisites(rule_set)
        + _cycles(rule_set)
    )


def validate_rule_set(rule_set: RuleSet) -> None:
    """Verify that a rule set is internally consistent.

    Args:
        rule_set: Rule set to check

    Raises:
        ConfigurationError: If any rule number is duplicated, any
            prerequisite is undeclared, or the dependencies form a cycle
    """
    violations = find_violations(rule_set)
    if violations:
        for violation in violations:
            logger.error(f"Rule set '{rule_set.name}': {violation}")
        raise ConfigurationError(violations)

    logger.debug(f"Rule set '{rule_set.name}' is consistent ({len(rule_set)} rules)")
