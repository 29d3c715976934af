"""Dependency-aware rule engine.

Runs every rule of a rule set against one bag and produces a report with
exactly one entry per declared rule:

- Rules not applicable to the deposit type are classified OUT_OF_SCOPE and
  never run.
- Rules run in topological order of their prerequisites. A rule whose
  prerequisite was VIOLATED, INAPPLICABLE or SKIPPED is classified SKIPPED
  and its check is never invoked, so skips propagate transitively.
- An exception escaping a check is recorded as a violation of that rule
  only; the run always completes.

The rule set must have passed `validate_rule_set` beforehand.
"""

import heapq
import logging
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Optional

from dansbag.rules.graph import DependencyGraph
from dansbag.rules.models import DepositType, Outcome, Rule, RuleSet
from dansbag.rules.report import Classification, Report, ReportEntry, RuleTrace
from dansbag.rules.validator import validate_rule_set
from dansbag.utils.time import utc_now

logger = logging.getLogger(__name__)

TIMED_OUT_REASON = "timed out"


@dataclass
class _RunState:
    """Bookkeeping for a single run. Only the scheduling thread writes to it."""

    graph: DependencyGraph
    deadline: Optional[float]
    results: dict[str, ReportEntry] = field(default_factory=dict)
    trace: list[RuleTrace] = field(default_factory=list)

    def record(self, entry: ReportEntry, duration: float = 0.0) -> None:
        # One slot per rule, written once
        if entry.number in self.results:
            raise RuntimeError(f"Rule {entry.number} was classified twice")
        self.results[entry.number] = entry
        self.trace.append(RuleTrace(entry.number, len(self.trace), duration))

    def blocking_prerequisite(self, number: str) -> Optional[ReportEntry]:
        """First in-scope prerequisite that did not end up SATISFIED."""
        for prerequisite in self.graph.prerequisites_of(number):
            entry = self.results[prerequisite]
            if entry.classification is not Classification.SATISFIED:
                return entry
        return None


class RuleEngine:
    """Executes rule sets against bags.

    Args:
        max_workers: Number of threads evaluating independent rules
            concurrently; 1 runs everything on the calling thread
        timeout: Optional run deadline in seconds. Once passed, no further
            rules are started and unresolved rules are recorded as SKIPPED
            with reason "timed out"
        verify_rule_sets: Re-run the consistency validator on every run
            (meant for development and tests)
        clock: Monotonic clock used for the deadline
    """

    def __init__(
        self,
        max_workers: int = 1,
        timeout: Optional[float] = None,
        verify_rule_sets: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.timeout = timeout
        self.verify_rule_sets = verify_rule_sets
        self._clock = clock

    def run(self, rule_set: RuleSet, target: Any, deposit_type: DepositType) -> Report:
        """Validate a target against a rule set.

        Args:
            rule_set: Consistent rule set
            target: Whatever the checks accept; an opened, readable bag
            deposit_type: Profile variant to validate against

        Returns:
            Report with one entry per rule, in declaration order
        """
        if self.verify_rule_sets:
            validate_rule_set(rule_set)

        started_at = utc_now()
        graph = DependencyGraph.build(rule_set, deposit_type)
        deadline = self._clock() + self.timeout if self.timeout is not None else None
        state = _RunState(graph=graph, deadline=deadline)

        for rule in rule_set:
            if rule.number not in graph:
                logger.debug(
                    f"Skipping rule {rule.number} because it does not apply to this deposit "
                    f"(deposit type: {deposit_type.value}, rule type: {rule.applicability.value})"
                )
                state.record(ReportEntry(
                    number=rule.number,
                    classification=Classification.OUT_OF_SCOPE,
                    reason=f"not applicable to {deposit_type.value} deposits",
                ))

        if self.max_workers == 1:
            self._run_sequential(state, target)
        else:
            self._run_parallel(state, target)

        self._expire_unresolved(state)

        return Report(
            rule_set_name=rule_set.name,
            rule_set_version=rule_set.version,
            deposit_type=deposit_type,
            entries=tuple(state.results[rule.number] for rule in rule_set),
            trace=tuple(state.trace),
            started_at=started_at,
            finished_at=utc_now(),
        )

    def _run_sequential(self, state: _RunState, target: Any) -> None:
        for number in state.graph.topological_order():
            if self._timed_out(state):
                return
            if self._skip_if_blocked(state, number):
                continue
            entry, duration = self._execute(state.graph.rule(number), target)
            state.record(entry, duration)

    def _run_parallel(self, state: _RunState, target: Any) -> None:
        graph = state.graph
        index = graph.rule_set.index_of
        remaining = graph.in_degree()
        ready = [(index(n), n) for n, degree in remaining.items() if degree == 0]
        heapq.heapify(ready)
        in_flight: dict[Future, str] = {}

        def resolved(number: str) -> None:
            for dependent in graph.dependents_of(number):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, (index(dependent), dependent))

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while ready or in_flight:
                while ready and not self._timed_out(state):
                    _, number = heapq.heappop(ready)
                    if self._skip_if_blocked(state, number):
                        resolved(number)
                        continue
                    future = executor.submit(self._execute, graph.rule(number), target)
                    in_flight[future] = number

                if not in_flight:
                    # Either everything resolved or the deadline passed
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: index(in_flight[f])):
                    number = in_flight.pop(future)
                    entry, duration = future.result()
                    state.record(entry, duration)
                    resolved(number)

    def _skip_if_blocked(self, state: _RunState, number: str) -> bool:
        blocker = state.blocking_prerequisite(number)
        if blocker is None:
            return False

        logger.debug(
            f"Skipping rule {number} because prerequisite {blocker.number} "
            f"is {blocker.classification.value}"
        )
        state.record(ReportEntry(
            number=number,
            classification=Classification.SKIPPED,
            reason=f"prerequisite {blocker.number} is {blocker.classification.value}",
        ))
        return True

    def _timed_out(self, state: _RunState) -> bool:
        return state.deadline is not None and self._clock() >= state.deadline

    def _expire_unresolved(self, state: _RunState) -> None:
        unresolved = [n for n in state.graph.numbers() if n not in state.results]
        if unresolved:
            logger.warning(
                f"Run deadline of {self.timeout}s passed; "
                f"{len(unresolved)} rule(s) were not evaluated"
            )
        for number in unresolved:
            state.record(ReportEntry(
                number=number,
                classification=Classification.SKIPPED,
                reason=TIMED_OUT_REASON,
            ))

    def _execute(self, rule: Rule, target: Any) -> tuple[ReportEntry, float]:
        """Invoke a rule's check, converting anything unexpected into a violation."""
        start = time.perf_counter()
        try:
            outcome = rule.check(target)
            if not isinstance(outcome, Outcome):
                raise TypeError(
                    f"Check returned {type(outcome).__name__}, expected Outcome"
                )
        except Exception as e:
            logger.exception(f"Error happened while executing rule {rule.number}")
            entry = ReportEntry(
                number=rule.number,
                classification=Classification.VIOLATED,
                messages=(f"Unexpected error while checking rule {rule.number}: {e}",),
                error=e,
            )
        else:
            entry = ReportEntry(
                number=rule.number,
                classification=Classification.from_outcome(outcome.status),
                messages=outcome.messages,
                error=outcome.error,
            )
        return entry, time.perf_counter() - start


def run_rules(
    rule_set: RuleSet,
    target: Any,
    deposit_type: DepositType,
    **engine_kwargs: Any,
) -> Report:
    """Convenience function to run a rule set with a fresh engine.

    Args:
        rule_set: Consistent rule set
        target: Bag target passed to every check
        deposit_type: Profile variant to validate against
        **engine_kwargs: Passed to `RuleEngine`

    Returns:
        Report
    """
    return RuleEngine(**engine_kwargs).run(rule_set, target, deposit_type)
