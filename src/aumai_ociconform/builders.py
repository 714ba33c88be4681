"""Manifest and index builders.

Every scenario starts from a baseline object and applies one mutation hook.
Hooks return a new object; the baseline itself is never modified, so a
rejection can always be attributed to the single field a scenario changed.
"""

from __future__ import annotations

from collections.abc import Iterable

from .mediatypes import (
    OCI_EMPTY,
    OCI_IMAGE_CONFIG,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_LAYER_GZIP,
    OCI_IMAGE_MANIFEST,
)
from .models import Descriptor, Index, Manifest, ManifestLike

__all__ = [
    "base_index",
    "base_manifest",
    "manifest_entry",
    "with_artifact_type",
    "with_config_media_type",
    "with_empty_config",
    "with_layer_media_type",
    "with_manifests",
    "with_media_type",
    "with_nested_index",
    "with_subject",
]


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


def base_manifest(config: Descriptor, layer: Descriptor) -> Manifest:
    """
    Build the baseline single-layer manifest.

    ``schemaVersion`` is 2, ``mediaType`` is left unset, the config is typed
    as an OCI image config and the layer as a gzip layer, whatever media type
    the incoming descriptors carry.
    """
    return Manifest(
        config=config.retyped(OCI_IMAGE_CONFIG),
        layers=(layer.retyped(OCI_IMAGE_LAYER_GZIP),),
    )


def with_config_media_type(manifest: Manifest, media_type: str) -> Manifest:
    return manifest.model_copy(
        update={"config": manifest.config.retyped(media_type)}
    )


def with_empty_config(
    manifest: Manifest, artifact_type: str | None = None
) -> Manifest:
    """
    Type the config as the empty descriptor, declaring the artifact through
    ``artifactType`` when one is given.

    Both fields describe the same thing (what kind of artifact this is), so
    they are changed together as one dimension.
    """
    update: dict[str, object] = {"config": manifest.config.retyped(OCI_EMPTY)}
    if artifact_type is not None:
        update["artifact_type"] = artifact_type
    return manifest.model_copy(update=update)


def with_layer_media_type(
    manifest: Manifest, media_type: str, position: int = 0
) -> Manifest:
    if not 0 <= position < len(manifest.layers):
        raise IndexError(f"manifest has no layer at position {position}")
    layers = list(manifest.layers)
    layers[position] = layers[position].retyped(media_type)
    return manifest.model_copy(update={"layers": tuple(layers)})


def with_subject(manifest: Manifest, subject: Descriptor) -> Manifest:
    """Attach a back-reference to an already pushed manifest."""
    return manifest.model_copy(
        update={"subject": subject.retyped(OCI_IMAGE_MANIFEST)}
    )


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


def base_index() -> Index:
    """Build the baseline index: no entries, no ``mediaType``."""
    return Index()


def manifest_entry(descriptor: Descriptor) -> Descriptor:
    """Index entry for a pushed image manifest."""
    return descriptor.retyped(OCI_IMAGE_MANIFEST)


def with_manifests(index: Index, descriptors: Iterable[Descriptor]) -> Index:
    return index.model_copy(
        update={"manifests": index.manifests + tuple(descriptors)}
    )


def with_nested_index(index: Index, nested: Descriptor) -> Index:
    """Append an entry pointing at another, already pushed, index."""
    return with_manifests(index, [nested.retyped(OCI_IMAGE_INDEX)])


# ---------------------------------------------------------------------------
# Hooks shared by manifests and indices
# ---------------------------------------------------------------------------


def with_media_type(obj: ManifestLike, media_type: str) -> ManifestLike:
    return obj.model_copy(update={"media_type": media_type})


def with_artifact_type(obj: ManifestLike, artifact_type: str) -> ManifestLike:
    return obj.model_copy(update={"artifact_type": artifact_type})
