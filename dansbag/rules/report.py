"""Validation report data model.

A report holds exactly one entry per declared rule, in the rule set's
declaration order, so that reports are stable and easy to diff. Execution
order is kept separately as a trace.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from dansbag.rules.models import DepositType, OutcomeStatus


class Classification(str, Enum):
    """Final classification of a rule in a run."""
    SATISFIED = "satisfied"
    VIOLATED = "violated"
    INAPPLICABLE = "inapplicable"
    SKIPPED = "skipped"
    OUT_OF_SCOPE = "out_of_scope"

    @classmethod
    def from_outcome(cls, status: OutcomeStatus) -> "Classification":
        return cls(status.value)


@dataclass(frozen=True)
class ReportEntry:
    """Classification of one rule."""
    number: str
    classification: Classification
    messages: tuple[str, ...] = ()
    reason: Optional[str] = None
    error: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule": self.number,
            "status": self.classification.value,
            "messages": list(self.messages),
        }
        if self.reason:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = f"{type(self.error).__name__}: {self.error}"
        return data


@dataclass(frozen=True)
class RuleTrace:
    """Position of an executed (or engine-classified) rule in the run."""
    number: str
    position: int
    duration_seconds: float = field(default=0.0, compare=False)


@dataclass(frozen=True)
class Report:
    """Complete, ordered result of one validation run."""

    rule_set_name: str
    rule_set_version: str
    deposit_type: DepositType
    entries: tuple[ReportEntry, ...]
    trace: tuple[RuleTrace, ...] = field(default=(), compare=False)
    started_at: Optional[datetime] = field(default=None, compare=False)
    finished_at: Optional[datetime] = field(default=None, compare=False)

    def entry(self, number: str) -> ReportEntry:
        """Get the entry for a rule number.

        Raises:
            KeyError: If the rule is not in the report
        """
        for entry in self.entries:
            if entry.number == number:
                return entry
        raise KeyError(number)

    def classification_of(self, number: str) -> Classification:
        return self.entry(number).classification

    def by_classification(self, classification: Classification) -> list[ReportEntry]:
        return [e for e in self.entries if e.classification is classification]

    def violations(self) -> list[ReportEntry]:
        return self.by_classification(Classification.VIOLATED)

    @property
    def is_compliant(self) -> bool:
        """A bag complies when no rule is violated."""
        return not self.violations()

    @property
    def execution_order(self) -> list[str]:
        return [t.number for t in self.trace]

    def counts(self) -> dict[Classification, int]:
        totals: dict[Classification, int] = {}
        for entry in self.entries:
            totals[entry.classification] = totals.get(entry.classification, 0) + 1
        return totals

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "rule_set": self.rule_set_name,
            "version": self.rule_set_version,
            "deposit_type": self.deposit_type.value,
            "is_compliant": self.is_compliant,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "counts": {c.value: n for c, n in self.counts().items()},
            "entries": [e.to_dict() for e in self.entries],
            "execution_order": self.execution_order,
        }
