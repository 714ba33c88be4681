"""Scenario runner: fixtures, build, push, assert, report, one scenario at a time."""

from __future__ import annotations

import time
from collections.abc import Sequence

import structlog

from .assertions import AssertionResult, PushOutcome, evaluate
from .context import RunContext, ScenarioContext, ScenarioInputs
from .errors import FixtureError, ManifestRejectedError, TransportError
from .fixtures import load_fixtures
from .models import ManifestLike, ScenarioResult, ScenarioStatus, SuiteResult
from .reporting import ReportSink
from .scenarios import Scenario, validate_plan

__all__ = ["ScenarioRun", "ScenarioRunner"]

logger = structlog.get_logger(__name__)

_TRANSITIONS: dict[ScenarioStatus, frozenset[ScenarioStatus]] = {
    ScenarioStatus.PENDING: frozenset({ScenarioStatus.RUNNING}),
    ScenarioStatus.RUNNING: frozenset(
        {ScenarioStatus.PASSED, ScenarioStatus.FAILED, ScenarioStatus.ERRORED}
    ),
}


class ScenarioRun:
    """Lifecycle of one scenario: pending -> running -> passed/failed/errored."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario
        self.status = ScenarioStatus.PENDING
        self._started = 0.0

    def _move(self, status: ScenarioStatus) -> None:
        if status not in _TRANSITIONS.get(self.status, frozenset()):
            raise RuntimeError(
                f"{self.scenario.name}: illegal transition "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def start(self) -> None:
        self._move(ScenarioStatus.RUNNING)
        self._started = time.monotonic()

    def finish(
        self,
        status: ScenarioStatus,
        diagnostic: str | None = None,
        divergent: bool = False,
        **details: object,
    ) -> ScenarioResult:
        self._move(status)
        return ScenarioResult(
            name=self.scenario.name,
            title=self.scenario.title,
            spec_clause=self.scenario.spec_clause,
            status=status,
            diagnostic=diagnostic,
            divergent=divergent,
            duration=time.monotonic() - self._started,
            details=details,
        )


class ScenarioRunner:
    """
    Runs a scenario list strictly in order against one registry reference.

    Scenarios are never reordered or run concurrently: they all push to the
    same tag, and later ones consume descriptors produced by earlier ones.
    """

    def __init__(self, context: RunContext, sinks: Sequence[ReportSink] = ()) -> None:
        self.context = context
        self.sinks = list(sinks)

    def run(self, scenarios: Sequence[Scenario]) -> SuiteResult:
        """Run *scenarios* and return the suite result; sinks see every record."""
        validate_plan(scenarios)
        produced = ScenarioContext()
        suite = SuiteResult()
        log = logger.bind(reference=str(self.context.reference))
        log.info("suite.started", scenarios=len(scenarios))

        try:
            for scenario in scenarios:
                result = self.run_scenario(scenario, produced)
                suite.results.append(result)
                for sink in self.sinks:
                    sink.record(result)
        finally:
            # An aborted run still writes the results recorded so far
            if len(suite.results) < len(scenarios):
                log.warning(
                    "suite.aborted", completed=len(suite.results), scenarios=len(scenarios)
                )
            for sink in self.sinks:
                sink.close(suite)
        return suite

    def run_scenario(self, scenario: Scenario, produced: ScenarioContext) -> ScenarioResult:
        run = ScenarioRun(scenario)
        run.start()
        log = logger.bind(scenario=scenario.name)

        missing = [key for key in scenario.requires if key not in produced]
        if missing:
            return run.finish(
                ScenarioStatus.ERRORED,
                f"required input {', '.join(missing)} was not produced; "
                "the scenario producing it did not pass",
            )

        try:
            fixtures = load_fixtures(self.context, scenario.setup)
        except FixtureError as exc:
            log.error("scenario.fixture_failed", error=str(exc))
            return run.finish(ScenarioStatus.ERRORED, str(exc))

        inputs = ScenarioInputs(
            fixtures=fixtures, produced={key: produced[key] for key in scenario.requires}
        )
        obj = scenario.build(inputs)
        log.debug("scenario.payload", payload=obj.to_display())

        try:
            outcome = self._push(obj)
        except TransportError as exc:
            log.error("scenario.transport_failed", error=str(exc))
            return run.finish(ScenarioStatus.ERRORED, str(exc))

        assertion = evaluate(scenario, outcome)
        if assertion.passed and outcome.succeeded and scenario.verify is not None:
            try:
                assertion = self._verify(scenario, obj, outcome, inputs)
            except TransportError as exc:
                log.error("scenario.verify_failed", error=str(exc))
                return run.finish(ScenarioStatus.ERRORED, str(exc))

        digest = outcome.descriptor.digest if outcome.descriptor else None
        if assertion.passed and scenario.produces is not None and outcome.succeeded:
            produced.publish(scenario.produces, outcome.descriptor)
            log.debug("scenario.produced", key=scenario.produces, digest=digest)

        return run.finish(
            assertion.status,
            assertion.diagnostic,
            assertion.divergent,
            digest=digest,
            error=outcome.error,
        )

    def _push(self, obj: ManifestLike) -> PushOutcome:
        """One push attempt; a registry refusal is an outcome, not an error."""
        try:
            descriptor = self.context.transport.put_manifest(self.context.reference, obj)
        except ManifestRejectedError as exc:
            return PushOutcome.from_rejection(exc)
        return PushOutcome.accepted(descriptor)

    def _verify(
        self,
        scenario: Scenario,
        obj: ManifestLike,
        outcome: PushOutcome,
        inputs: ScenarioInputs,
    ) -> AssertionResult:
        try:
            problem = scenario.verify(self.context, obj, outcome.descriptor, inputs)
        except ValueError as exc:
            problem = f"registry returned an unreadable manifest: {exc}"
        if problem is None:
            return AssertionResult(ScenarioStatus.PASSED)
        return AssertionResult(ScenarioStatus.FAILED, f"{scenario.spec_clause}: {problem}")
