"""
Refresh use case — run one detection cycle end to end.

Ties together config loading, catalog construction, the probe runner,
the detection engine and the report sinks (history ledger and latest
report snapshot).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sysprobe.adapters.base import CancelToken, ProbeRunner
from sysprobe.adapters.mock import MockProbeRunner
from sysprobe.adapters.shell.command import SubprocessProbeRunner
from sysprobe.core.config.loader import ConfigError, SysprobeConfig, load_config
from sysprobe.core.engine.detection import DetectionEngine
from sysprobe.core.models.report import DetectionReport
from sysprobe.core.persistence.history import HistoryWriter, ReportSink, default_notes
from sysprobe.core.persistence.state_file import LatestReportFile

logger = logging.getLogger(__name__)


def mock_runner() -> MockProbeRunner:
    """A runner scripted with typical output from a healthy machine."""
    runner = MockProbeRunner(runner_name="mock")
    runner.set_output("blueutil", "1\n")
    runner.set_output(
        "system_profiler-usb",
        "USB:\n\n    USB 3.1 Bus:\n\n      Host Controller Driver: AppleT8103USBXHCI\n",
    )
    runner.set_output("socketfilterfw", "Firewall is enabled. (State = 1)\n")
    runner.set_output("networksetup", "Enabled\n")
    return runner


def build_engine(
    config: SysprobeConfig,
    runner: ProbeRunner | None = None,
    full: bool = False,
    mock: bool = False,
) -> DetectionEngine:
    """Build a detection engine from configuration.

    Args:
        config: Loaded configuration.
        runner: Explicit runner (default: subprocess, or mock when ``mock``).
        full: Run every probe for diagnostics instead of short-circuiting.
        mock: Use the scripted mock runner.

    Raises:
        ConfigError: If the configured catalog is invalid.
    """
    if runner is None:
        runner = mock_runner() if mock else SubprocessProbeRunner()

    settings = config.engine_settings()
    if full:
        settings = settings.model_copy(update={"short_circuit": False})

    return DetectionEngine(config.build_catalog(), runner, settings)


def build_sinks(config: SysprobeConfig, note: str | None = None) -> list[ReportSink]:
    """History ledger plus latest-report snapshot, at their configured paths."""
    return [
        HistoryWriter(config.history_path, notes=note or default_notes()),
        LatestReportFile(config.state_path),
    ]


def publish(report: DetectionReport, sinks: list[ReportSink]) -> list[str]:
    """Hand a report to each sink; returns the errors of sinks that failed."""
    errors: list[str] = []
    for sink in sinks:
        try:
            sink.record(report)
        except Exception as e:
            logger.error("Sink %s failed for report %s: %s", type(sink).__name__, report.report_id, e)
            errors.append(f"{type(sink).__name__}: {e}")
    return errors


@dataclass
class RefreshResult:
    """Result of the refresh use case."""

    report: DetectionReport | None = None
    config_path: Path | None = None
    saved: bool = False
    errors: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}

        result: dict = {
            "config_path": str(self.config_path) if self.config_path else None,
            "saved": self.saved,
        }
        if self.errors:
            result["errors"] = self.errors
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_refresh(
    config_path: Path | None = None,
    save: bool = True,
    full: bool = False,
    mock: bool = False,
    note: str | None = None,
    cancel: CancelToken | None = None,
    runner: ProbeRunner | None = None,
) -> RefreshResult:
    """Run one detection cycle.

    Args:
        config_path: Optional explicit path to sysprobe.yml.
        save: Whether to record the report to history and the snapshot.
        full: Run every probe instead of stopping at the first definitive one.
        mock: Use the scripted mock runner (no real execution).
        note: Note attached to the history record.
        cancel: Token to abandon the cycle.
        runner: Explicit probe runner (overrides ``mock``).

    Returns:
        RefreshResult with the new report.
    """
    result = RefreshResult()

    try:
        config = load_config(config_path)
        engine = build_engine(config, runner=runner, full=full, mock=mock)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.config_path = config.source
    report = engine.refresh(cancel)
    result.report = report

    if save and not report.cancelled:
        result.errors = publish(report, build_sinks(config, note))
        result.saved = not result.errors

    return result
