"""Error taxonomy for aumai-ociconform.

Harness faults and registry verdicts are kept apart: a
``ManifestRejectedError`` is the registry answering the question a scenario
asks, every other ``RegistryError`` is a ``TransportError`` that says nothing
about the clause under test.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ConformanceError",
    "FixtureError",
    "ManifestRejectedError",
    "RegistryError",
    "ScenarioPlanError",
    "TransportError",
]


class ConformanceError(Exception):
    """Base class for all aumai-ociconform errors."""


class FixtureError(ConformanceError):
    """A local test-data file could not be read or uploaded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ScenarioPlanError(ConformanceError, ValueError):
    """The scenario list declares inputs that no earlier scenario produces."""


class RegistryError(ConformanceError):
    """Base class for failures reported by the registry transport."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class TransportError(RegistryError):
    """Network, authentication or server fault unrelated to the payload."""


class ManifestRejectedError(RegistryError):
    """The registry refused a manifest or index payload (HTTP 4xx)."""
