"""Outcome assertion layer: classify one push against its expectation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from .errors import ManifestRejectedError
from .models import Descriptor, ScenarioStatus
from .policy import ErrorMatcher

if TYPE_CHECKING:
    from .scenarios import Scenario

__all__ = [
    "Accepted",
    "AssertionResult",
    "Expectation",
    "PushOutcome",
    "Rejected",
    "evaluate",
]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Accepted:
    """The registry MUST store the payload."""

    def describe(self) -> str:
        return "accepted"


@dataclass(frozen=True)
class Rejected:
    """The registry MUST refuse the payload; *matcher* checks the error text."""

    matcher: ErrorMatcher = ErrorMatcher()

    def describe(self) -> str:
        return f"rejected with {self.matcher.describe()}"


Expectation = Accepted | Rejected


@dataclass(frozen=True)
class PushOutcome:
    """Raw result of the single push attempt a scenario makes."""

    descriptor: Descriptor | None = None
    error: str | None = None
    # errors[].message values of the registry reply, without harness context
    messages: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.descriptor is not None

    @classmethod
    def accepted(cls, descriptor: Descriptor) -> PushOutcome:
        return cls(descriptor=descriptor)

    @classmethod
    def rejected(cls, error: str, messages: tuple[str, ...] = ()) -> PushOutcome:
        return cls(error=error, messages=messages)

    @classmethod
    def from_rejection(cls, exc: ManifestRejectedError) -> PushOutcome:
        messages = tuple(
            str(entry["message"])
            for entry in exc.errors
            if isinstance(entry, dict) and entry.get("message")
        )
        return cls.rejected(str(exc), messages)


@dataclass(frozen=True)
class AssertionResult:
    status: ScenarioStatus
    diagnostic: str | None = None
    divergent: bool = False

    @property
    def passed(self) -> bool:
        return self.status is ScenarioStatus.PASSED


def evaluate(scenario: Scenario, outcome: PushOutcome) -> AssertionResult:
    """
    Compare *outcome* with what *scenario* expects.

    Returns ``PASSED`` or ``FAILED``; harness faults never reach this
    function, they are reported as ``ERRORED`` by the runner.
    """
    expected = scenario.expected
    if isinstance(expected, Accepted):
        if outcome.succeeded and outcome.descriptor.digest:
            return AssertionResult(ScenarioStatus.PASSED)
        return AssertionResult(
            ScenarioStatus.FAILED,
            f"{scenario.spec_clause}: expected the registry to accept the "
            f"payload, it was rejected: {outcome.error or 'no digest returned'}",
        )

    if outcome.succeeded:
        return AssertionResult(
            ScenarioStatus.FAILED,
            f"{scenario.spec_clause}: expected the registry to reject the "
            f"payload, it was accepted as {outcome.descriptor.digest}",
        )

    error = outcome.error or ""
    matcher = expected.matcher
    if matcher.matches(error, outcome.messages):
        return AssertionResult(ScenarioStatus.PASSED)

    diagnostic = f"rejected as required, but expected {matcher.describe()}, got {error!r}"
    if matcher.strict:
        return AssertionResult(
            ScenarioStatus.FAILED, f"{scenario.spec_clause}: {diagnostic}"
        )
    logger.warning("assertion.tolerated_divergence", scenario=scenario.name, error=error)
    return AssertionResult(ScenarioStatus.PASSED, diagnostic, divergent=True)
