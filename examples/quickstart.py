"""
aumai-ociconform quickstart: build probe payloads, then run the suite.

Run directly:

    python examples/quickstart.py

Demos 1 and 2 work offline. Demo 3 pushes to a real registry and only runs
when REGISTRY_HOST and REGISTRY_NAMESPACE are set, for example against a
throwaway ``registry:2`` container:

    docker run -d -p 5000:5000 registry:2
    REGISTRY_HOST=http://localhost:5000 REGISTRY_NAMESPACE=quickstart \\
        python examples/quickstart.py
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Demo 1: Baseline manifest and single-field mutations
# ---------------------------------------------------------------------------

def demo_builders() -> None:
    """Show the baseline manifest and what each mutation hook changes."""
    print("\n=== Demo 1: Baseline manifest and mutations ===")

    from aumai_ociconform import builders
    from aumai_ociconform.context import DEFAULT_DATA_DIR
    from aumai_ociconform.digest import sha256_bytes
    from aumai_ociconform.models import Descriptor

    def local(name: str) -> Descriptor:
        path = DEFAULT_DATA_DIR / name
        return Descriptor(
            media_type="application/octet-stream",
            digest=sha256_bytes(path.read_bytes()),
            size=path.stat().st_size,
        )

    baseline = builders.base_manifest(local("demo-config.txt"), local("demo-file.txt"))
    print(baseline.to_display())

    wrong = builders.with_media_type(baseline, "application/wrong.type+json")
    artifact = builders.with_empty_config(baseline, "application/my-artifact")
    print(f"\n  wrong mediaType     : {wrong.media_type}")
    print(f"  empty config type   : {artifact.config.media_type}")
    print(f"  artifactType        : {artifact.artifact_type}")
    print(f"  baseline untouched  : mediaType={baseline.media_type}")


# ---------------------------------------------------------------------------
# Demo 2: The scenario catalogue
# ---------------------------------------------------------------------------

def demo_catalogue() -> None:
    """List scenarios with their expectations and declared dependencies."""
    print("\n=== Demo 2: Scenario catalogue ===")

    from aumai_ociconform.scenarios import default_scenarios, select_scenarios

    scenarios = default_scenarios()
    for s in scenarios:
        deps = f" (needs {', '.join(s.requires)})" if s.requires else ""
        print(f"  {s.name:<46} {s.expected.describe()}{deps}")

    subset = select_scenarios(scenarios, ["index-nested"])
    print(f"\n  --only index-nested runs: {[s.name for s in subset]}")


# ---------------------------------------------------------------------------
# Demo 3: Run the suite against a registry
# ---------------------------------------------------------------------------

def demo_run() -> None:
    """Run every scenario against the registry named in the environment."""
    print("\n=== Demo 3: Run against a registry ===")

    if not (os.environ.get("REGISTRY_HOST") and os.environ.get("REGISTRY_NAMESPACE")):
        print("  REGISTRY_HOST / REGISTRY_NAMESPACE not set, skipping.")
        return

    from aumai_ociconform.config import ConformanceSettings
    from aumai_ociconform.context import RunContext
    from aumai_ociconform.logs import configure_logging
    from aumai_ociconform.registry import RegistryClient
    from aumai_ociconform.reporting import MemorySink
    from aumai_ociconform.runner import ScenarioRunner
    from aumai_ociconform.scenarios import default_scenarios

    configure_logging("WARNING")
    settings = ConformanceSettings()
    context = RunContext(
        transport=RegistryClient.from_settings(settings), reference=settings.reference
    )
    sink = MemorySink()
    suite = ScenarioRunner(context, [sink]).run(default_scenarios())

    for result in sink.results:
        print(f"  {result.status.value:<8} {result.name}")
        if result.diagnostic:
            print(f"           {result.diagnostic}")
    print(f"\n  Suite passed: {suite.passed}")


if __name__ == "__main__":
    demo_builders()
    demo_catalogue()
    demo_run()
