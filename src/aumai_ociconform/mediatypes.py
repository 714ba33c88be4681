"""OCI media type constants used by the conformance scenarios."""

from __future__ import annotations

__all__ = [
    "OCI_EMPTY",
    "OCI_IMAGE_CONFIG",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_LAYER_GZIP",
    "OCI_IMAGE_MANIFEST",
    "MANIFEST_ACCEPT",
]

OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_IMAGE_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
OCI_EMPTY = "application/vnd.oci.empty.v1+json"

# Sent as the Accept header when reading manifests back by digest
MANIFEST_ACCEPT = ", ".join([OCI_IMAGE_MANIFEST, OCI_IMAGE_INDEX])
