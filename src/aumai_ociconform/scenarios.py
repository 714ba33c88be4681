"""The conformance scenario catalogue.

Each scenario checks one clause of the OCI Image Specification v1.1.0 by
building a baseline manifest or index, changing one field, pushing it and
comparing the registry's answer with what the clause requires.

Scenarios run in catalogue order. Those that point at objects pushed earlier
(``subject`` and nested indices) declare the descriptor they need in
``requires``; the scenario that pushes it declares the same key in
``produces``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog

from . import builders
from .assertions import Accepted, Expectation, Rejected
from .context import RunContext, ScenarioInputs
from .errors import ManifestRejectedError, ScenarioPlanError
from .fixtures import MANIFEST_SETUP
from .mediatypes import OCI_IMAGE_CONFIG, OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST
from .models import Descriptor, Manifest, ManifestLike
from .policy import WRONG_MEDIA_TYPE, matcher_for

__all__ = [
    "Scenario",
    "default_scenarios",
    "select_scenarios",
    "validate_plan",
]

logger = structlog.get_logger(__name__)

MANIFEST_SPEC = "https://github.com/opencontainers/image-spec/blob/v1.1.0/manifest.md"
INDEX_SPEC = "https://github.com/opencontainers/image-spec/blob/v1.1.0/image-index.md"

ARTIFACT_TYPE = "application/my-artifact"

Builder = Callable[[ScenarioInputs], ManifestLike]
# Returns a failure diagnostic, or None when the pushed object checks out
Verifier = Callable[[RunContext, ManifestLike, Descriptor, ScenarioInputs], str | None]


@dataclass(frozen=True)
class Scenario:
    name: str
    title: str
    spec_clause: str
    build: Builder
    expected: Expectation = Accepted()
    setup: tuple[tuple[str, str], ...] = MANIFEST_SETUP
    requires: tuple[str, ...] = ()
    produces: str | None = None
    verify: Verifier | None = None


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _baseline(inputs: ScenarioInputs) -> Manifest:
    return builders.base_manifest(inputs.fixtures["config"], inputs.fixtures["layer"])


def _default_manifest(inputs: ScenarioInputs) -> ManifestLike:
    return builders.with_media_type(_baseline(inputs), OCI_IMAGE_MANIFEST)


def _index_of_manifest(inputs: ScenarioInputs) -> ManifestLike:
    return builders.with_manifests(
        builders.base_index(), [builders.manifest_entry(inputs.produced["manifest"])]
    )


# ---------------------------------------------------------------------------
# Verifiers
# ---------------------------------------------------------------------------


def _verify_subject(
    context: RunContext, pushed: ManifestLike, descriptor: Descriptor, inputs: ScenarioInputs
) -> str | None:
    """Read the manifest back and check its subject still names the target."""
    raw = context.transport.get_manifest(context.reference, descriptor.digest)
    stored = Manifest.model_validate_json(raw)
    expected = inputs.produced["manifest"].digest
    if stored.subject is None:
        return f"{descriptor.digest} was stored without its subject"
    if stored.subject.digest != expected:
        return f"stored subject.digest is {stored.subject.digest}, expected {expected}"
    return None


def _verify_repush(
    context: RunContext, pushed: ManifestLike, descriptor: Descriptor, inputs: ScenarioInputs
) -> str | None:
    """Push the identical payload again; content addressing must give the same digest."""
    try:
        again = context.transport.put_manifest(context.reference, pushed)
    except ManifestRejectedError as exc:
        return f"identical payload was rejected on second push: {exc}"
    if again.digest != descriptor.digest:
        return f"second push returned {again.digest}, first returned {descriptor.digest}"
    return None


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


def default_scenarios() -> list[Scenario]:
    """The full suite, in the order it must run."""
    return [
        Scenario(
            name="manifest-without-media-type",
            title="Manifest without a `mediaType` is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: mediaType [...] This property SHOULD be used",
            build=_baseline,
        ),
        Scenario(
            name="manifest-default-media-type",
            title="Manifest with `mediaType` `application/vnd.oci.image.manifest.v1+json` is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: mediaType [...] when used, this field MUST contain {OCI_IMAGE_MANIFEST}",
            build=_default_manifest,
            produces="manifest",
        ),
        # Same payload as the baseline: base_manifest already types the config
        # as OCI_IMAGE_CONFIG
        Scenario(
            name="manifest-default-config-type",
            title="Manifest with `config/mediaType` `application/vnd.oci.image.config.v1+json` is accepted (same payload as the baseline).",
            spec_clause=f"{MANIFEST_SPEC}: config/mediaType [...] Implementations MUST support at least {OCI_IMAGE_CONFIG}",
            build=lambda i: builders.with_config_media_type(_baseline(i), OCI_IMAGE_CONFIG),
        ),
        Scenario(
            name="manifest-empty-config-with-artifact-type",
            title="Manifest with empty config and custom `artifactType` is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: artifactType [...] This MUST be set when config.mediaType is set to the empty value",
            build=lambda i: builders.with_empty_config(_baseline(i), ARTIFACT_TYPE),
        ),
        Scenario(
            name="manifest-empty-config-without-artifact-type",
            title="Manifest with empty config and no `artifactType` is rejected.",
            spec_clause=f"{MANIFEST_SPEC}: artifactType [...] This MUST be set when config.mediaType is set to the empty value",
            build=lambda i: builders.with_empty_config(_baseline(i)),
            expected=Rejected(matcher_for("manifest-empty-config-without-artifact-type")),
        ),
        Scenario(
            name="manifest-custom-config-type",
            title="Manifest with custom `config/mediaType`, as artifact type, is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: config/mediaType [...] MUST NOT error on encountering a value that is unknown to the implementation",
            build=lambda i: builders.with_config_media_type(
                _baseline(i), "application/my-artifact-legacy"
            ),
        ),
        Scenario(
            name="manifest-custom-layer-type",
            title="Manifest with custom `layers/mediaType` is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: layers/mediaType [...] MUST NOT error on encountering a mediaType that is unknown to the implementation",
            build=lambda i: builders.with_layer_media_type(
                _baseline(i), "application/my-blob-format"
            ),
        ),
        Scenario(
            name="manifest-wrong-media-type",
            title="Manifest with wrong `mediaType` is rejected.",
            spec_clause=f"{MANIFEST_SPEC}: mediaType [...] when used, this field MUST contain {OCI_IMAGE_MANIFEST}",
            build=lambda i: builders.with_media_type(_baseline(i), WRONG_MEDIA_TYPE),
            expected=Rejected(matcher_for("manifest-wrong-media-type")),
        ),
        Scenario(
            name="manifest-with-subject",
            title="Manifest with `subject` property is accepted.",
            spec_clause=f"{MANIFEST_SPEC}: subject [...] This OPTIONAL property specifies a descriptor of another manifest",
            build=lambda i: builders.with_subject(_baseline(i), i.produced["manifest"]),
            requires=("manifest",),
            verify=_verify_subject,
        ),
        Scenario(
            name="manifest-repush-is-idempotent",
            title="Pushing an identical manifest twice yields the same digest.",
            spec_clause=f"{MANIFEST_SPEC}: content addressing, identical payloads have identical digests",
            build=_baseline,
            verify=_verify_repush,
        ),
        Scenario(
            name="index-without-media-type",
            title="Index without a `mediaType` is accepted.",
            spec_clause=f"{INDEX_SPEC}: mediaType [...] This property SHOULD be used",
            build=_index_of_manifest,
            setup=(),
            requires=("manifest",),
        ),
        Scenario(
            name="index-default-media-type",
            title="Index with `mediaType` `application/vnd.oci.image.index.v1+json` is accepted.",
            spec_clause=f"{INDEX_SPEC}: mediaType [...] when used, this field MUST contain {OCI_IMAGE_INDEX}",
            build=lambda i: builders.with_media_type(_index_of_manifest(i), OCI_IMAGE_INDEX),
            setup=(),
            requires=("manifest",),
            produces="index",
        ),
        Scenario(
            name="index-artifact-type",
            title="Index with custom `artifactType` is accepted.",
            spec_clause=f"{INDEX_SPEC}: artifactType [...] MUST comply with RFC 6838",
            build=lambda i: builders.with_artifact_type(
                builders.with_media_type(_index_of_manifest(i), OCI_IMAGE_INDEX),
                ARTIFACT_TYPE,
            ),
            setup=(),
            requires=("manifest",),
        ),
        Scenario(
            name="index-repush-is-idempotent",
            title="Pushing an identical index twice yields the same digest.",
            spec_clause=f"{INDEX_SPEC}: content addressing, identical payloads have identical digests",
            build=_index_of_manifest,
            setup=(),
            requires=("manifest",),
            verify=_verify_repush,
        ),
        Scenario(
            name="index-wrong-media-type",
            title="Index with wrong `mediaType` is rejected.",
            spec_clause=f"{INDEX_SPEC}: mediaType [...] when used, this field MUST contain {OCI_IMAGE_INDEX}",
            build=lambda i: builders.with_media_type(builders.base_index(), WRONG_MEDIA_TYPE),
            expected=Rejected(matcher_for("index-wrong-media-type")),
            setup=(),
        ),
        Scenario(
            name="index-nested",
            title="Index referencing another index is accepted.",
            spec_clause=f"{INDEX_SPEC}: manifests/mediaType SHOULD support [...] {OCI_IMAGE_INDEX}",
            build=lambda i: builders.with_nested_index(
                builders.with_media_type(builders.base_index(), OCI_IMAGE_INDEX),
                i.produced["index"],
            ),
            setup=(),
            requires=("index",),
        ),
    ]


def validate_plan(scenarios: Iterable[Scenario]) -> None:
    """
    Check names are unique, every ``requires`` key is produced by an earlier
    scenario and no key is produced twice.
    """
    seen: set[str] = set()
    produced: set[str] = set()
    for scenario in scenarios:
        if scenario.name in seen:
            raise ScenarioPlanError(f"duplicate scenario name {scenario.name!r}")
        seen.add(scenario.name)
        missing = [key for key in scenario.requires if key not in produced]
        if missing:
            raise ScenarioPlanError(
                f"{scenario.name!r} requires {', '.join(missing)} but no earlier "
                "scenario produces it"
            )
        if scenario.produces is not None:
            if scenario.produces in produced:
                raise ScenarioPlanError(f"{scenario.produces!r} is produced twice")
            produced.add(scenario.produces)


def select_scenarios(scenarios: list[Scenario], names: Iterable[str]) -> list[Scenario]:
    """
    Return the named scenarios plus every scenario they transitively depend
    on, in catalogue order.
    """
    by_name = {s.name: s for s in scenarios}
    producers = {s.produces: s for s in scenarios if s.produces is not None}
    wanted: set[str] = set()
    pending = list(names)
    while pending:
        name = pending.pop()
        if name in wanted:
            continue
        if name not in by_name:
            raise ScenarioPlanError(f"unknown scenario {name!r}")
        wanted.add(name)
        for key in by_name[name].requires:
            if key not in producers:
                raise ScenarioPlanError(f"{name!r} requires {key!r}, nothing produces it")
            pending.append(producers[key].name)
    selected = [s for s in scenarios if s.name in wanted]
    logger.debug("scenarios.selected", names=[s.name for s in selected])
    return selected
