"""Per-run dependency graph over the rules in scope for a deposit type."""

import heapq
import logging
from dataclasses import dataclass, field

from dansbag.rules.models import DepositType, Rule, RuleSet
from dansbag.rules.validator import (
    ConfigurationError,
    ConfigurationViolation,
    ViolationKind,
)

logger = logging.getLogger(__name__)


@dataclass
class DependencyGraph:
    """Rules in scope for one deposit type and the edges between them.

    Edges point from a rule to its prerequisites. Prerequisites that are
    declared but out of scope for the deposit type are dropped: they are
    treated as vacuously satisfied and recorded in `dropped_prerequisites`.
    """

    rule_set: RuleSet
    deposit_type: DepositType
    rules: list[Rule] = field(default_factory=list)
    prerequisites: dict[str, tuple[str, ...]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)
    dropped_prerequisites: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, rule_set: RuleSet, deposit_type: DepositType) -> "DependencyGraph":
        """Build the graph for the rules in scope for a deposit type.

        Assumes the rule set passed the consistency validator, so the
        filtered graph is acyclic and every prerequisite is declared.
        """
        graph = cls(rule_set=rule_set, deposit_type=deposit_type)
        graph.rules = rule_set.in_scope(deposit_type)
        in_scope = {rule.number for rule in graph.rules}

        for rule in graph.rules:
            graph.dependents.setdefault(rule.number, [])

        for rule in graph.rules:
            kept = tuple(p for p in rule.prerequisites if p in in_scope)
            dropped = tuple(p for p in rule.prerequisites if p not in in_scope)
            graph.prerequisites[rule.number] = kept
            if dropped:
                graph.dropped_prerequisites[rule.number] = dropped
                logger.debug(
                    f"Rule {rule.number}: prerequisites {list(dropped)} are not "
                    f"applicable to {deposit_type.value} deposits and count as satisfied"
                )
            for prerequisite in kept:
                graph.dependents[prerequisite].append(rule.number)

        return graph

    def __contains__(self, number: object) -> bool:
        return number in self.prerequisites

    def __len__(self) -> int:
        return len(self.rules)

    def numbers(self) -> list[str]:
        """In-scope rule numbers in declaration order."""
        return [rule.number for rule in self.rules]

    def rule(self, number: str) -> Rule:
        return self.rule_set.get(number)

    def prerequisites_of(self, number: str) -> tuple[str, ...]:
        return self.prerequisites[number]

    def dependents_of(self, number: str) -> list[str]:
        """Rules that list `number` as an in-scope prerequisite, in declaration order."""
        return self.dependents[number]

    def in_degree(self) -> dict[str, int]:
        """Number of unresolved in-scope prerequisites per rule."""
        return {number: len(prereqs) for number, prereqs in self.prerequisites.items()}

    def topological_order(self) -> list[str]:
        """Kahn's algorithm, preferring the earliest declared ready rule.

        Raises:
            ConfigurationError: If the graph contains a cycle, which only
                happens when the rule set was never validated
        """
        remaining = self.in_degree()
        index = self.rule_set.index_of
        ready = [(index(n), n) for n, degree in remaining.items() if degree == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, number = heapq.heappop(ready)
            order.append(number)
            for dependent in self.dependents[number]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, (index(dependent), dependent))

        if len(order) != len(self.rules):
            ordered = set(order)
            unprocessed = tuple(n for n in self.numbers() if n not in ordered)
            raise ConfigurationError([
                ConfigurationViolation(
                    kind=ViolationKind.CYCLE,
                    numbers=unprocessed,
                    message=(
                        "Rules could not be ordered, most likely a dependency cycle: "
                        + ", ".join(unprocessed)
                    ),
                )
            ])

        return order
