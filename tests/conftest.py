"""Shared test fixtures for aumai-ociconform."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from aumai_ociconform.context import RunContext
from aumai_ociconform.digest import sha256_bytes
from aumai_ociconform.errors import ManifestRejectedError, TransportError
from aumai_ociconform.mediatypes import OCI_EMPTY, OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST
from aumai_ociconform.models import Descriptor, Index, Manifest, ManifestLike
from aumai_ociconform.registry import Reference


# ---------------------------------------------------------------------------
# In-memory registry
# ---------------------------------------------------------------------------


class FakeRegistry:
    """
    In-memory ``RegistryTransport`` that enforces the image-spec rules the
    scenarios check. Test double; not for production use.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.manifests: dict[str, bytes] = {}
        self.tags: dict[str, str] = {}
        self.pushes: list[ManifestLike] = []

        # Failure injection
        self.blob_error: str | None = None        # every blob upload fails
        self.manifest_error: str | None = None    # every manifest push fails
        self.lenient = False                      # accept any payload
        self.rejection_wording: str | None = None  # replaces the media type message
        self.drop_subject = False                 # store manifests without subject
        self.unstable_digests = False             # re-push yields another digest

    # RegistryTransport -------------------------------------------------

    def put_blob(self, ref: Reference, content: bytes) -> Descriptor:
        if self.blob_error:
            raise TransportError(self.blob_error, status_code=503)
        digest = sha256_bytes(content)
        self.blobs[digest] = content
        return Descriptor(media_type="application/octet-stream", digest=digest, size=len(content))

    def put_manifest(self, ref: Reference, obj: ManifestLike) -> Descriptor:
        if self.manifest_error:
            raise TransportError(self.manifest_error, status_code=502)
        self.pushes.append(obj)
        if not self.lenient:
            self._validate(obj)

        payload = obj.to_payload()
        if self.drop_subject and isinstance(obj, Manifest):
            payload = obj.model_copy(update={"subject": None}).to_payload()
        digest = sha256_bytes(payload)
        if self.unstable_digests and digest in self.manifests:
            payload += b" "
            digest = sha256_bytes(payload)
        self.manifests[digest] = payload
        self.tags[ref.tag] = digest
        return Descriptor(media_type=obj.implied_media_type, digest=digest, size=len(payload))

    def get_manifest(self, ref: Reference, digest: str) -> bytes:
        try:
            return self.manifests[digest]
        except KeyError:
            raise TransportError(f"manifest {digest} unknown", status_code=404) from None

    # Validation --------------------------------------------------------

    def _reject(self, message: str) -> None:
        raise ManifestRejectedError(
            f"manifest rejected: HTTP 400: MANIFEST_INVALID: {message}",
            status_code=400,
            errors=[{"code": "MANIFEST_INVALID", "message": message}],
        )

    def _validate(self, obj: ManifestLike) -> None:
        expected = OCI_IMAGE_MANIFEST if isinstance(obj, Manifest) else OCI_IMAGE_INDEX
        if obj.media_type is not None and obj.media_type != expected:
            self._reject(
                self.rejection_wording
                or "manifest contains an unexpected media type: "
                f"expected {expected}, received {obj.media_type}"
            )
        if isinstance(obj, Manifest):
            for blob in (obj.config, *obj.layers):
                if blob.digest not in self.blobs:
                    self._reject(f"blob unknown: {blob.digest}")
            if obj.config.media_type == OCI_EMPTY and obj.artifact_type is None:
                self._reject("artifactType must be set when config.mediaType is empty")
            if obj.subject is not None and obj.subject.digest not in self.manifests:
                self._reject(f"subject unknown: {obj.subject.digest}")
        if isinstance(obj, Index):
            for entry in obj.manifests:
                if entry.digest not in self.manifests:
                    self._reject(f"manifest unknown: {entry.digest}")

    # Helpers -----------------------------------------------------------

    def stored(self, digest: str) -> dict:
        return json.loads(self.manifests[digest])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture()
def reference() -> Reference:
    return Reference(host="localhost:5000", repository="conformance/test", tag="demo")


@pytest.fixture()
def run_context(fake_registry: FakeRegistry, reference: Reference) -> RunContext:
    return RunContext(transport=fake_registry, reference=reference)


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    """A fixture directory with its own layer and config files."""
    d = tmp_path / "data"
    d.mkdir()
    (d / "demo-file.txt").write_text("layer content\n", encoding="utf-8")
    (d / "demo-config.txt").write_bytes(b"{}")
    return d


@pytest.fixture()
def config_descriptor() -> Descriptor:
    return Descriptor(
        media_type="application/octet-stream",
        digest="sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a",
        size=2,
    )


@pytest.fixture()
def layer_descriptor() -> Descriptor:
    return Descriptor(
        media_type="application/octet-stream",
        digest="sha256:" + "e" * 64,
        size=69,
    )


@pytest.fixture(autouse=True)
def _clean_registry_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep REGISTRY_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("REGISTRY_"):
            monkeypatch.delenv(name, raising=False)
