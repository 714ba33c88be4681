"""Tests for aumai_ociconform.assertions and aumai_ociconform.policy."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from aumai_ociconform import builders
from aumai_ociconform.assertions import Accepted, PushOutcome, Rejected, evaluate
from aumai_ociconform.errors import ManifestRejectedError
from aumai_ociconform.models import Descriptor, ScenarioStatus
from aumai_ociconform.policy import (
    ERROR_POLICY,
    ErrorMatcher,
    MatchMode,
    matcher_for,
)
from aumai_ociconform.registry import Reference, RegistryClient
from aumai_ociconform.scenarios import Scenario

WRONG_TYPE_ERROR = (
    "manifest rejected: HTTP 400: MANIFEST_INVALID: manifest contains an unexpected "
    "media type: expected application/vnd.oci.image.manifest.v1+json, "
    "received application/wrong.type+json"
)


def _scenario(expected) -> Scenario:
    return Scenario(
        name="media-type-check",
        title="Media type check",
        spec_clause="manifest.md: mediaType",
        build=lambda inputs: builders.base_index(),
        expected=expected,
    )


@pytest.fixture()
def pushed() -> Descriptor:
    return Descriptor(
        media_type="application/vnd.oci.image.manifest.v1+json",
        digest="sha256:" + "a" * 64,
        size=300,
    )


# ---------------------------------------------------------------------------
# ErrorMatcher
# ---------------------------------------------------------------------------


class TestErrorMatcher:
    def test_any_matches_everything(self) -> None:
        assert ErrorMatcher().matches("")
        assert ErrorMatcher().matches("whatever")

    def test_substring(self) -> None:
        m = ErrorMatcher(MatchMode.SUBSTRING, "expected a, received b")
        assert m.matches("error: expected a, received b.")
        assert not m.matches("expected b, received a")

    def test_exact_ignores_surrounding_whitespace(self) -> None:
        m = ErrorMatcher(MatchMode.EXACT, "bad manifest")
        assert m.matches("bad manifest\n")
        assert not m.matches("a bad manifest")

    def test_text_modes_require_expected(self) -> None:
        with pytest.raises(ValueError):
            ErrorMatcher(MatchMode.SUBSTRING)

    def test_policy_defaults_to_any(self) -> None:
        assert matcher_for("no-such-scenario").mode is MatchMode.ANY

    def test_wrong_media_type_policy_is_tolerant_substring(self) -> None:
        m = matcher_for("manifest-wrong-media-type")
        assert m.mode is MatchMode.SUBSTRING
        assert not m.strict
        assert m.matches(WRONG_TYPE_ERROR)
        assert "index-wrong-media-type" in ERROR_POLICY


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------


class TestEvaluateAccepted:
    def test_success_passes(self, pushed: Descriptor) -> None:
        result = evaluate(_scenario(Accepted()), PushOutcome.accepted(pushed))
        assert result.status is ScenarioStatus.PASSED
        assert result.diagnostic is None

    def test_rejection_fails_with_registry_error(self) -> None:
        result = evaluate(_scenario(Accepted()), PushOutcome.rejected("MANIFEST_INVALID"))
        assert result.status is ScenarioStatus.FAILED
        assert "MANIFEST_INVALID" in result.diagnostic
        assert "manifest.md: mediaType" in result.diagnostic

    def test_empty_digest_fails(self, pushed: Descriptor) -> None:
        no_digest = pushed.model_copy(update={"digest": ""})
        result = evaluate(_scenario(Accepted()), PushOutcome.accepted(no_digest))
        assert result.status is ScenarioStatus.FAILED


class TestEvaluateRejected:
    def test_unexpected_success_fails(self, pushed: Descriptor) -> None:
        result = evaluate(_scenario(Rejected()), PushOutcome.accepted(pushed))
        assert result.status is ScenarioStatus.FAILED
        assert pushed.digest in result.diagnostic

    def test_any_error_passes(self) -> None:
        result = evaluate(_scenario(Rejected()), PushOutcome.rejected("nope"))
        assert result.passed
        assert not result.divergent

    def test_matching_text_passes(self) -> None:
        scenario = _scenario(Rejected(matcher_for("manifest-wrong-media-type")))
        result = evaluate(scenario, PushOutcome.rejected(WRONG_TYPE_ERROR))
        assert result.passed
        assert not result.divergent

    def test_tolerated_divergence_passes_with_diagnostic(self) -> None:
        scenario = _scenario(Rejected(matcher_for("manifest-wrong-media-type")))
        result = evaluate(scenario, PushOutcome.rejected("MANIFEST_INVALID: bad type"))
        assert result.status is ScenarioStatus.PASSED
        assert result.divergent
        assert "bad type" in result.diagnostic

    def test_strict_mismatch_fails(self) -> None:
        strict = ErrorMatcher(MatchMode.EXACT, "exact words", strict=True)
        result = evaluate(_scenario(Rejected(strict)), PushOutcome.rejected("other words"))
        assert result.status is ScenarioStatus.FAILED
        assert "exact words" in result.diagnostic

    def test_exact_matches_one_of_several_registry_messages(self) -> None:
        exact = ErrorMatcher(MatchMode.EXACT, "second", strict=True)
        outcome = PushOutcome.rejected("HTTP 400: A: first; B: second", ("first", "second"))
        assert evaluate(_scenario(Rejected(exact)), outcome).passed


class TestRegistryRejection:
    """Matching against what ``RegistryClient`` actually raises."""

    @pytest.fixture()
    def rejection(self, reference: Reference) -> ManifestRejectedError:
        body = {"errors": [{"code": "MANIFEST_INVALID", "message": "manifest invalid"}]}
        response = MagicMock(spec=requests.Response)
        response.status_code = 400
        response.headers = {}
        response.reason = "Bad Request"
        response.json.return_value = body
        response.text = json.dumps(body)
        session = MagicMock(spec=requests.Session)
        session.request.return_value = response

        client = RegistryClient(tls=False, session=session)
        with pytest.raises(ManifestRejectedError) as info:
            client.put_manifest(reference, builders.base_index())
        return info.value

    def test_outcome_carries_registry_messages(self, rejection: ManifestRejectedError) -> None:
        outcome = PushOutcome.from_rejection(rejection)
        assert outcome.messages == ("manifest invalid",)
        assert outcome.error.startswith("manifest rejected by localhost:5000")
        assert not outcome.succeeded

    def test_strict_exact_matches_registry_wording(self, rejection: ManifestRejectedError) -> None:
        exact = ErrorMatcher(MatchMode.EXACT, "manifest invalid", strict=True)
        result = evaluate(_scenario(Rejected(exact)), PushOutcome.from_rejection(rejection))
        assert result.status is ScenarioStatus.PASSED
        assert not result.divergent

    def test_strict_exact_still_fails_on_other_wording(
        self, rejection: ManifestRejectedError
    ) -> None:
        exact = ErrorMatcher(MatchMode.EXACT, "manifest invalid: bad type", strict=True)
        result = evaluate(_scenario(Rejected(exact)), PushOutcome.from_rejection(rejection))
        assert result.status is ScenarioStatus.FAILED

    def test_malformed_error_entries_are_skipped(self) -> None:
        exc = ManifestRejectedError(
            "manifest rejected", 400, errors=[{"code": "X"}, "oops", {"message": "kept"}]
        )
        assert PushOutcome.from_rejection(exc).messages == ("kept",)
