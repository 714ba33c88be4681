"""Pydantic models for aumai-ociconform."""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from .mediatypes import OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST

__all__ = [
    "Descriptor",
    "Index",
    "Manifest",
    "ManifestLike",
    "ScenarioResult",
    "ScenarioStatus",
    "SuiteResult",
]


class _OCIModel(BaseModel):
    """Shared config: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> bytes:
        """Serialise to the exact bytes pushed to the registry.

        Unset optional fields are omitted and field order is fixed, so equal
        objects always produce equal payloads (and therefore equal digests).
        """
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    def to_display(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=4)


class Descriptor(_OCIModel):
    """
    Content-addressed reference to a blob or manifest.

    Identity is ``(digest, size)``. ``media_type`` is metadata attached by
    whatever object holds the descriptor and takes no part in equality.
    """

    media_type: str = Field(alias="mediaType")
    digest: str
    size: int
    artifact_type: str | None = Field(default=None, alias="artifactType")
    annotations: dict[str, str] | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Descriptor):
            return NotImplemented
        return self.digest == other.digest and self.size == other.size

    def __hash__(self) -> int:
        return hash((self.digest, self.size))

    def retyped(self, media_type: str) -> Descriptor:
        """Return the same content reference under another media type."""
        return self.model_copy(update={"media_type": media_type})


class Manifest(_OCIModel):
    """
    OCI Image Manifest (schema version 2).

    Follows the OCI Image Manifest Specification
    https://github.com/opencontainers/image-spec/blob/v1.1.0/manifest.md
    """

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    artifact_type: str | None = Field(default=None, alias="artifactType")
    config: Descriptor
    layers: tuple[Descriptor, ...] = ()
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    @property
    def implied_media_type(self) -> str:
        """Media type the payload is sent as: declared, or the manifest default."""
        return self.media_type or OCI_IMAGE_MANIFEST


class Index(_OCIModel):
    """
    OCI Image Index (schema version 2).

    https://github.com/opencontainers/image-spec/blob/v1.1.0/image-index.md
    """

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    artifact_type: str | None = Field(default=None, alias="artifactType")
    manifests: tuple[Descriptor, ...] = ()
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    @property
    def implied_media_type(self) -> str:
        return self.media_type or OCI_IMAGE_INDEX


ManifestLike = Union[Manifest, Index]


class ScenarioStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


class ScenarioResult(BaseModel):
    """One report record: the final state of a single scenario."""

    name: str
    title: str
    spec_clause: str
    status: ScenarioStatus
    diagnostic: str | None = None
    divergent: bool = False     # rejected as required, but with other wording
    duration: float = 0.0       # seconds
    details: dict[str, Any] = Field(default_factory=dict)


class SuiteResult(BaseModel):
    """Ordered scenario results for one run."""

    results: list[ScenarioResult] = Field(default_factory=list)

    def count(self, status: ScenarioStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def passed(self) -> bool:
        """True when no scenario failed or errored."""
        return all(r.status is ScenarioStatus.PASSED for r in self.results)
