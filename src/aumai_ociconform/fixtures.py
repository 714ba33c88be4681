"""Blob fixture loader: push fixed local files as content-addressed blobs."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

from .context import RunContext
from .digest import sha256_bytes
from .errors import FixtureError, RegistryError
from .models import Descriptor

__all__ = [
    "CONFIG_FIXTURE",
    "LAYER_FIXTURE",
    "MANIFEST_SETUP",
    "load_fixtures",
    "push_fixture",
]

logger = structlog.get_logger(__name__)

LAYER_FIXTURE = "demo-file.txt"
CONFIG_FIXTURE = "demo-config.txt"

# (role, file) pairs pushed before any manifest is built
MANIFEST_SETUP: tuple[tuple[str, str], ...] = (
    ("layer", LAYER_FIXTURE),
    ("config", CONFIG_FIXTURE),
)


def push_fixture(context: RunContext, path: str | Path) -> Descriptor:
    """
    Upload the file at *path* (relative paths resolve against the run's data
    directory) and return its descriptor.

    Any read or upload failure is raised as ``FixtureError``; there are no
    retries, the first failure is the one reported.
    """
    fixture = Path(path)
    if not fixture.is_absolute():
        fixture = context.data_dir / fixture
    try:
        content = fixture.read_bytes()
    except OSError as exc:
        raise FixtureError(f"cannot read fixture {fixture}: {exc}", str(fixture)) from exc

    try:
        descriptor = context.transport.put_blob(context.reference, content)
    except RegistryError as exc:
        raise FixtureError(f"cannot upload fixture {fixture}: {exc}", str(fixture)) from exc

    expected = sha256_bytes(content)
    if descriptor.digest != expected:
        raise FixtureError(
            f"registry stored {fixture.name} as {descriptor.digest}, expected {expected}",
            str(fixture),
        )
    logger.debug(
        "fixture.pushed", path=str(fixture), digest=descriptor.digest, size=descriptor.size
    )
    return descriptor


def load_fixtures(
    context: RunContext, setup: Iterable[tuple[str, str]] = MANIFEST_SETUP
) -> dict[str, Descriptor]:
    """Push each fixture of *setup* in order, keyed by its role."""
    return {role: push_fixture(context, path) for role, path in setup}
