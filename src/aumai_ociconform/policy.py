"""Error-text matching policy for rejection scenarios.

Registries may phrase the same refusal differently and still be compliant,
so most matchers are tolerant: a mismatch is logged as a divergence and the
scenario still passes. A matcher is strict only where the image-spec wording
leaves no room for interpretation. Every decision lives in
``ERROR_POLICY`` so it can be reviewed in one place.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .mediatypes import OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST

__all__ = ["ERROR_POLICY", "WRONG_MEDIA_TYPE", "ErrorMatcher", "MatchMode", "matcher_for"]

WRONG_MEDIA_TYPE = "application/wrong.type+json"


class MatchMode(str, Enum):
    ANY = "any"              # any error text satisfies the expectation
    SUBSTRING = "substring"
    EXACT = "exact"


@dataclass(frozen=True)
class ErrorMatcher:
    """Predicate over the error text of a rejected push."""

    mode: MatchMode = MatchMode.ANY
    expected: str = ""
    strict: bool = False

    def __post_init__(self) -> None:
        if self.mode is not MatchMode.ANY and not self.expected:
            raise ValueError(f"{self.mode.value} matcher needs an expected text")

    def matches(self, text: str, messages: Iterable[str] = ()) -> bool:
        """
        Match the full error *text* or any of the registry's own *messages*.

        *messages* are the ``errors[].message`` values of the reply; EXACT
        can only ever hold against one of those, since *text* carries the
        transport's context around them.
        """
        if self.mode is MatchMode.ANY:
            return True
        candidates = (text, *messages)
        if self.mode is MatchMode.EXACT:
            return any(c.strip() == self.expected for c in candidates)
        return any(self.expected in c for c in candidates)

    def describe(self) -> str:
        if self.mode is MatchMode.ANY:
            return "any error"
        return f"error {self.mode.value} {self.expected!r}"


def _unexpected_media_type(expected: str) -> str:
    return f"expected {expected}, received {WRONG_MEDIA_TYPE}"


ERROR_POLICY: dict[str, ErrorMatcher] = {
    "manifest-wrong-media-type": ErrorMatcher(
        MatchMode.SUBSTRING, _unexpected_media_type(OCI_IMAGE_MANIFEST)
    ),
    "index-wrong-media-type": ErrorMatcher(
        MatchMode.SUBSTRING, _unexpected_media_type(OCI_IMAGE_INDEX)
    ),
    # manifest.md requires artifactType here but says nothing about wording
    "manifest-empty-config-without-artifact-type": ErrorMatcher(MatchMode.ANY),
}


def matcher_for(scenario_name: str) -> ErrorMatcher:
    """Policy entry for *scenario_name*, defaulting to "any error"."""
    return ERROR_POLICY.get(scenario_name, ErrorMatcher())
