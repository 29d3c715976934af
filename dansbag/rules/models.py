"""Rule, rule set and outcome data models."""

import hashlib
import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol


class DepositType(str, Enum):
    """Profile variant a bag is validated against (the run mode)."""
    DEPOSIT = "deposit"
    MIGRATION = "migration"


class Applicability(str, Enum):
    """Deposit types a rule applies to."""
    ANY = "any"
    DEPOSIT_ONLY = "deposit_only"
    MIGRATION_ONLY = "migration_only"

    def applies_to(self, deposit_type: DepositType) -> bool:
        """Check whether a rule with this applicability runs for a deposit type."""
        if self is Applicability.ANY:
            return True
        if self is Applicability.DEPOSIT_ONLY:
            return deposit_type is DepositType.DEPOSIT
        return deposit_type is DepositType.MIGRATION


class OutcomeStatus(str, Enum):
    """Result of running a single check."""
    SATISFIED = "satisfied"
    VIOLATED = "violated"
    INAPPLICABLE = "inapplicable"


@dataclass(frozen=True)
class Outcome:
    """What a check decided about the bag.

    `INAPPLICABLE` means the rule's precondition does not hold (for example
    an optional file is absent). It is not a failure of the bag, but rules
    depending on it cannot be checked and are skipped.
    """

    status: OutcomeStatus
    messages: tuple[str, ...] = ()
    error: Optional[BaseException] = field(default=None, compare=False)

    @classmethod
    def satisfied(cls) -> "Outcome":
        return cls(OutcomeStatus.SATISFIED)

    @classmethod
    def violated(cls, *messages: str, error: Optional[BaseException] = None) -> "Outcome":
        """Build a violation; at least one depositor-facing message is required."""
        if not messages:
            raise ValueError("A violated outcome requires at least one message")
        return cls(OutcomeStatus.VIOLATED, tuple(messages), error)

    @classmethod
    def inapplicable(cls, reason: Optional[str] = None) -> "Outcome":
        return cls(OutcomeStatus.INAPPLICABLE, (reason,) if reason else ())

    @property
    def is_satisfied(self) -> bool:
        return self.status is OutcomeStatus.SATISFIED


class Check(Protocol):
    """A single profile requirement, evaluated against a bag.

    May raise instead of returning; the engine records that as a violation.
    """

    def __call__(self, target: Any) -> Outcome:  # pragma: no cover
        ...


@dataclass(frozen=True)
class Rule:
    """A check bound to a clause number, with prerequisites and applicability."""
    number: str
    check: Check
    applicability: Applicability = Applicability.ANY
    prerequisites: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        # Accept lists from configuration while keeping the rule hashable
        if not isinstance(self.prerequisites, tuple):
            object.__setattr__(self, "prerequisites", tuple(self.prerequisites))

    def in_scope(self, deposit_type: DepositType) -> bool:
        return self.applicability.applies_to(deposit_type)


class RuleSet:
    """An ordered, read-only collection of rules.

    Declaration order is only used for report ordering and for tie-breaking
    between rules that are ready at the same time. Duplicate numbers are
    accepted here and reported by the consistency validator, so that all
    configuration problems surface together.
    """

    def __init__(
        self,
        rules: Iterable[Rule],
        name: str = "",
        version: str = "",
    ) -> None:
        self.name = name
        self.version = version
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._by_number: dict[str, Rule] = {}
        self._index: dict[str, int] = {}
        for position, rule in enumerate(self._rules):
            # First declaration wins for lookups
            self._by_number.setdefault(rule.number, rule)
            self._index.setdefault(rule.number, position)
        self._hash: Optional[str] = None

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, number: object) -> bool:
        return number in self._by_number

    def __repr__(self) -> str:
        return f"RuleSet(name={self.name!r}, version={self.version!r}, rules={len(self)})"

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def numbers(self) -> list[str]:
        """Rule numbers in declaration order."""
        return [rule.number for rule in self._rules]

    def get(self, number: str) -> Rule:
        """Get a rule by number.

        Raises:
            KeyError: If no rule with that number is declared
        """
        return self._by_number[number]

    def index_of(self, number: str) -> int:
        """Declaration position of a rule."""
        return self._index[number]

    def in_scope(self, deposit_type: DepositType) -> list[Rule]:
        """Rules that run for a deposit type, in declaration order."""
        return [rule for rule in self._rules if rule.in_scope(deposit_type)]

    @property
    def content_hash(self) -> str:
        """SHA-256 over the rule structure (numbers, applicability, prerequisites)."""
        if self._hash is None:
            content = {
                "name": self.name,
                "version": self.version,
                "rules": [
                    {
                        "number": r.number,
                        "applicability": r.applicability.value,
                        "prerequisites": list(r.prerequisites),
                    }
                    for r in self._rules
                ],
            }
            content_str = json.dumps(content, sort_keys=True)
            self._hash = hashlib.sha256(content_str.encode()).hexdigest()
        return self._hash
