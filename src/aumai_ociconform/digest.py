"""sha256 content digests in OCI ``algorithm:hex`` form."""

from __future__ import annotations

import hashlib

__all__ = ["sha256_bytes"]


def sha256_bytes(data: bytes) -> str:
    """Return 'sha256:<hex>' digest for *data*."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"
