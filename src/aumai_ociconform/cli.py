"""CLI entry point for aumai-ociconform."""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError, version

import click

from .config import ConformanceSettings
from .context import DEFAULT_DATA_DIR, RunContext
from .errors import ScenarioPlanError
from .logs import configure_logging
from .models import ScenarioStatus
from .registry import RegistryClient
from .reporting import HtmlSink, JUnitXmlSink, LoggingSink
from .runner import ScenarioRunner
from .scenarios import default_scenarios, select_scenarios

_DIST_NAME = "aumai-ociconform"


def _version() -> str:
    try:
        return version(_DIST_NAME)
    except PackageNotFoundError:
        return "unknown"


@click.group()
@click.version_option(package_name=_DIST_NAME)
def main() -> None:
    """AumAI OCIConform: OCI image-spec conformance tests for registries."""


@main.command("run")
@click.option("--host", default=None, help="Registry host; prefix with http:// to disable TLS. [env: REGISTRY_HOST]")
@click.option("--user", default=None, help="Registry user. [env: REGISTRY_USER]")
@click.option("--password", default=None, help="Registry password. [env: REGISTRY_PASSWORD]")
@click.option("--namespace", default=None, help="Repository to push into. [env: REGISTRY_NAMESPACE]")
@click.option("--tag", default=None, help="Tag every scenario pushes to. [env: REGISTRY_TAG]")
@click.option(
    "--only",
    multiple=True,
    help="Run only this scenario (repeatable); its dependencies are added.",
)
@click.option("--junit", "junit_report", type=click.Path(dir_okay=False), default=None, help="JUnit XML report path.")
@click.option("--html", "html_report", type=click.Path(dir_okay=False), default=None, help="HTML report path.")
@click.option(
    "--data-dir",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory holding demo-file.txt and demo-config.txt.",
)
@click.option("--debug", is_flag=True, help="Log every HTTP request and response.")
@click.option("--log-level", default=None, help="Logging level. [env: REGISTRY_LOG_LEVEL]")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines.")
def run_command(
    host: str | None,
    user: str | None,
    password: str | None,
    namespace: str | None,
    tag: str | None,
    only: tuple[str, ...],
    junit_report: str | None,
    html_report: str | None,
    data_dir: str | None,
    debug: bool,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """Run the conformance suite against a registry."""
    overrides = {
        key: value
        for key, value in {
            "host": host,
            "user": user,
            "password": password,
            "namespace": namespace,
            "tag": tag,
            "junit_report": junit_report,
            "html_report": html_report,
            "data_dir": data_dir,
            "log_level": log_level,
        }.items()
        if value is not None
    }
    if debug:
        overrides["debug"] = True
        overrides.setdefault("log_level", "DEBUG")
    if json_logs:
        overrides["json_logs"] = True
    settings = ConformanceSettings(**overrides)
    configure_logging(settings.log_level, settings.json_logs)

    try:
        reference = settings.reference
    except ValueError as exc:
        click.echo(f"Error: {exc} (use --host/--namespace or REGISTRY_HOST/REGISTRY_NAMESPACE)", err=True)
        sys.exit(2)

    scenarios = default_scenarios()
    if only:
        try:
            scenarios = select_scenarios(scenarios, only)
        except ScenarioPlanError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(2)

    context = RunContext(
        transport=RegistryClient.from_settings(settings),
        reference=reference,
        data_dir=settings.data_dir or DEFAULT_DATA_DIR,
    )
    sinks = [
        LoggingSink(),
        JUnitXmlSink(settings.junit_report),
        HtmlSink(settings.html_report, version=_version()),
    ]
    suite = ScenarioRunner(context, sinks).run(scenarios)

    click.echo(f"Registry : {reference}")
    for result in suite.results:
        marker = "~" if result.divergent else " "
        click.echo(f"  {result.status.value.upper():<8}{marker} {result.name}")
        if result.diagnostic and result.status is not ScenarioStatus.PASSED:
            click.echo(f"      {result.diagnostic}")
    click.echo(
        f"\n{suite.count(ScenarioStatus.PASSED)} passed, "
        f"{suite.count(ScenarioStatus.FAILED)} failed, "
        f"{suite.count(ScenarioStatus.ERRORED)} errored"
    )
    click.echo(f"Reports  : {settings.junit_report}, {settings.html_report}")
    if not suite.passed:
        sys.exit(1)


@main.command("list")
def list_command() -> None:
    """List the scenarios in the order they run."""
    for scenario in default_scenarios():
        click.echo(f"{scenario.name}")
        click.echo(f"  {scenario.title}")
        click.echo(f"  expects : {scenario.expected.describe()}")
        if scenario.requires:
            click.echo(f"  requires: {', '.join(scenario.requires)}")
        if scenario.produces:
            click.echo(f"  produces: {scenario.produces}")


if __name__ == "__main__":
    main()
