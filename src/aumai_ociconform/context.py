"""Values threaded through a conformance run."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .models import Descriptor
from .registry import Reference, RegistryTransport

__all__ = ["DEFAULT_DATA_DIR", "RunContext", "ScenarioContext", "ScenarioInputs"]

DEFAULT_DATA_DIR = Path(__file__).parent / "test_data"


@dataclass(frozen=True)
class RunContext:
    """Everything a scenario needs to talk to the registry under test."""

    transport: RegistryTransport
    reference: Reference
    data_dir: Path = DEFAULT_DATA_DIR


class ScenarioContext(Mapping[str, Descriptor]):
    """
    Descriptors published by finished scenarios, keyed by the name each
    scenario declares in ``produces``.

    Keys are write-once for the length of a run.
    """

    def __init__(self) -> None:
        self._produced: dict[str, Descriptor] = {}

    def publish(self, key: str, descriptor: Descriptor) -> None:
        if key in self._produced:
            raise KeyError(f"{key!r} has already been produced in this run")
        self._produced[key] = descriptor

    def __getitem__(self, key: str) -> Descriptor:
        return self._produced[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._produced)

    def __len__(self) -> int:
        return len(self._produced)


@dataclass(frozen=True)
class ScenarioInputs:
    """What a scenario's build step may read: its fixtures and declared inputs."""

    fixtures: Mapping[str, Descriptor] = field(default_factory=dict)
    produced: Mapping[str, Descriptor] = field(default_factory=dict)
