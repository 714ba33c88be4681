"""Report sinks.

Sinks receive one ``ScenarioResult`` per scenario, in execution order, as
soon as it is final, and the ``SuiteResult`` once the run ends. A run cut
short still leaves every recorded result in the sinks.
"""

from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import structlog

from .models import ScenarioResult, ScenarioStatus, SuiteResult

__all__ = [
    "HtmlSink",
    "JUnitXmlSink",
    "LoggingSink",
    "MemorySink",
    "ReportSink",
]

logger = structlog.get_logger(__name__)

SUITE_NAME = "OCI Feature Tests"


class ReportSink(ABC):
    """Abstract base class for report sinks."""

    @abstractmethod
    def record(self, result: ScenarioResult) -> None:
        """Receive the final result of one scenario."""
        ...

    def close(self, suite: SuiteResult) -> None:
        """Called once after the last scenario."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class MemorySink(ReportSink):
    """Keep results in a list."""

    def __init__(self) -> None:
        self.results: list[ScenarioResult] = []
        self.suite: SuiteResult | None = None

    def record(self, result: ScenarioResult) -> None:
        self.results.append(result)

    def close(self, suite: SuiteResult) -> None:
        self.suite = suite


class LoggingSink(ReportSink):
    """One structured log line per scenario and a summary line."""

    def record(self, result: ScenarioResult) -> None:
        log = logger.bind(
            scenario=result.name, status=result.status.value, duration=round(result.duration, 3)
        )
        if result.status is ScenarioStatus.PASSED:
            if result.divergent:
                log.warning("scenario.passed", diagnostic=result.diagnostic)
            else:
                log.info("scenario.passed")
        else:
            log.error(
                f"scenario.{result.status.value}",
                clause=result.spec_clause,
                diagnostic=result.diagnostic,
            )

    def close(self, suite: SuiteResult) -> None:
        logger.info(
            "suite.finished",
            passed=suite.count(ScenarioStatus.PASSED),
            failed=suite.count(ScenarioStatus.FAILED),
            errored=suite.count(ScenarioStatus.ERRORED),
            success=suite.passed,
        )


class JUnitXmlSink(ReportSink):
    """Write a JUnit XML report when the suite closes."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._results: list[ScenarioResult] = []

    def record(self, result: ScenarioResult) -> None:
        self._results.append(result)

    def close(self, suite: SuiteResult) -> None:
        root = ET.Element("testsuites")
        testsuite = ET.SubElement(
            root,
            "testsuite",
            name=SUITE_NAME,
            tests=str(len(self._results)),
            failures=str(suite.count(ScenarioStatus.FAILED)),
            errors=str(suite.count(ScenarioStatus.ERRORED)),
            time=f"{sum(r.duration for r in self._results):.3f}",
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        for result in self._results:
            case = ET.SubElement(
                testsuite,
                "testcase",
                name=result.title,
                classname=result.name,
                time=f"{result.duration:.3f}",
            )
            if result.status is ScenarioStatus.FAILED:
                ET.SubElement(case, "failure", message=result.diagnostic or "").text = (
                    result.spec_clause
                )
            elif result.status is ScenarioStatus.ERRORED:
                ET.SubElement(case, "error", message=result.diagnostic or "").text = (
                    result.spec_clause
                )
            elif result.divergent:
                ET.SubElement(case, "system-out").text = result.diagnostic

        self.path.parent.mkdir(parents=True, exist_ok=True)
        ET.ElementTree(root).write(self.path, encoding="utf-8", xml_declaration=True)
        logger.info("report.written", format="junit", path=str(self.path))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={str(self.path)!r})"


_STATUS_COLOURS = {
    ScenarioStatus.PASSED: "#2e7d32",
    ScenarioStatus.FAILED: "#c62828",
    ScenarioStatus.ERRORED: "#ef6c00",
}


class HtmlSink(ReportSink):
    """Write a single-page HTML summary when the suite closes."""

    def __init__(self, path: str | Path, version: str = "unknown") -> None:
        self.path = Path(path)
        self.version = version
        self._results: list[ScenarioResult] = []

    def record(self, result: ScenarioResult) -> None:
        self._results.append(result)

    def close(self, suite: SuiteResult) -> None:
        rows = []
        for result in self._results:
            colour = _STATUS_COLOURS.get(result.status, "#000")
            rows.append(
                "<tr>"
                f"<td>{html.escape(result.title)}</td>"
                f'<td style="color:{colour}"><b>{result.status.value}</b></td>'
                f"<td><small>{html.escape(result.spec_clause)}</small></td>"
                f"<td><pre>{html.escape(result.diagnostic or '')}</pre></td>"
                "</tr>"
            )
        summary = (
            f"{suite.count(ScenarioStatus.PASSED)} passed, "
            f"{suite.count(ScenarioStatus.FAILED)} failed, "
            f"{suite.count(ScenarioStatus.ERRORED)} errored"
        )
        page = (
            "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
            f"<title>{SUITE_NAME}</title></head><body>"
            f"<h1>{SUITE_NAME}</h1>"
            f"<p>aumai-ociconform {html.escape(self.version)}: {summary}</p>"
            "<table border=\"1\" cellpadding=\"4\">"
            "<tr><th>Scenario</th><th>Status</th><th>Clause</th><th>Diagnostic</th></tr>"
            + "".join(rows)
            + "</table></body></html>\n"
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(page, encoding="utf-8")
        logger.info("report.written", format="html", path=str(self.path))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={str(self.path)!r})"
