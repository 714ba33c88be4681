"""Run configuration, read from ``REGISTRY_*`` environment variables.

Examples
--------
::

    export REGISTRY_HOST=http://localhost:5000
    export REGISTRY_NAMESPACE=conformance/test
    export REGISTRY_USER=admin
    export REGISTRY_PASSWORD=secret

A host given as ``http://...`` disables TLS; ``https://`` or a bare host
keeps it on.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .registry import Reference

__all__ = ["ConformanceSettings"]


class ConformanceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REGISTRY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Registry under test
    host: str = ""
    user: str = ""
    password: str = ""
    namespace: str = ""
    tag: str = "demo"

    # Transport
    timeout: float = 30.0
    debug: bool = False

    # Output
    junit_report: Path = Path("report.xml")
    html_report: Path = Path("report.html")
    log_level: str = "INFO"
    json_logs: bool = False

    # Test data, defaults to the files shipped with the package
    data_dir: Path | None = None

    @property
    def tls(self) -> bool:
        return not self.host.startswith("http://")

    @property
    def registry_host(self) -> str:
        """Host without scheme."""
        return self.host.removeprefix("http://").removeprefix("https://").rstrip("/")

    @property
    def reference(self) -> Reference:
        if not self.registry_host or not self.namespace:
            raise ValueError("registry host and namespace must both be set")
        return Reference(
            host=self.registry_host, repository=self.namespace.strip("/"), tag=self.tag
        )
