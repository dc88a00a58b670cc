"""
Detection engine — resolve every capability and publish a report.

The engine owns the catalog and the current DetectionReport. A refresh
resolves all capabilities in parallel (they are independent), assembles
a fresh immutable report, and publishes it with a single reference swap.
Readers never see a half-updated report.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor

from pydantic import BaseModel, Field

from sysprobe.adapters.base import DEFAULT_TIMEOUT_S, CancelToken, ProbeRunner
from sysprobe.core.catalog import DEFAULT_VARIABLES, validate_catalog
from sysprobe.core.engine.resolver import CapabilityResolver
from sysprobe.core.models.capability import (
    Capability,
    CapabilityResult,
    CapabilitySpec,
    ProbeVerdict,
)
from sysprobe.core.models.report import DetectionReport

logger = logging.getLogger(__name__)


class ReportUnavailableError(Exception):
    """Raised when a value is requested before the first refresh."""


class EngineSettings(BaseModel):
    """Tunables for a detection engine."""

    probe_timeout: float = Field(default=DEFAULT_TIMEOUT_S, gt=0)
    short_circuit: bool = True
    probe_workers: int = Field(default=1, ge=1)
    max_workers: int = Field(default=4, ge=1)
    variables: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_VARIABLES))


class DetectionEngine:
    """Resolves the catalog into DetectionReports.

    Usage:
        engine = DetectionEngine(default_catalog(), SubprocessProbeRunner())
        report = engine.refresh()
        engine.query(Capability.USB)
    """

    def __init__(
        self,
        catalog: Mapping[Capability, CapabilitySpec],
        runner: ProbeRunner,
        settings: EngineSettings | None = None,
    ):
        validate_catalog(catalog)
        self._catalog = dict(catalog)
        self._runner = runner
        self._settings = settings or EngineSettings()
        self._report: DetectionReport | None = None
        self._publish_lock = threading.Lock()

    @property
    def runner(self) -> ProbeRunner:
        return self._runner

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def catalog(self) -> dict[Capability, CapabilitySpec]:
        return dict(self._catalog)

    @property
    def capabilities(self) -> list[Capability]:
        """Catalogued capabilities in declaration order."""
        return [cap for cap in Capability if cap in self._catalog]

    @property
    def report(self) -> DetectionReport | None:
        """The last published report, or None before the first refresh."""
        return self._report

    # ── Refresh ────────────────────────────────────────────────────

    def refresh(self, cancel: CancelToken | None = None) -> DetectionReport:
        """Run one detection cycle.

        Returns the new report. A cancelled cycle returns a report flagged
        ``cancelled`` which is not published; the previous report stays
        current.
        """
        start = time.monotonic()
        caps = self.capabilities
        logger.info("Refreshing %d capabilities via %s runner", len(caps), self._runner.name)

        with ThreadPoolExecutor(
            max_workers=min(self._settings.max_workers, len(caps)),
            thread_name_prefix="capability",
        ) as pool:
            futures = {cap: pool.submit(self._resolve, cap, cancel) for cap in caps}
            results: dict[Capability, CapabilityResult] = {
                cap: future.result() for cap, future in futures.items()
            }

        cancelled = cancel is not None and cancel.cancelled
        report = DetectionReport(
            duration_ms=int((time.monotonic() - start) * 1000),
            cancelled=cancelled,
            results=results,
        )

        if cancelled:
            logger.warning("Refresh %s cancelled; keeping previous report", report.report_id)
            return report

        self._publish(report)
        logger.info(
            "Refresh %s done in %dms: %s",
            report.report_id,
            report.duration_ms,
            ", ".join(f"{k}={v}" for k, v in report.summary().items()),
        )
        return report

    def _resolve(self, cap: Capability, cancel: CancelToken | None) -> CapabilityResult:
        resolver = CapabilityResolver(
            self._catalog[cap],
            self._runner,
            short_circuit=self._settings.short_circuit,
            probe_workers=self._settings.probe_workers,
            timeout=self._settings.probe_timeout,
            variables=self._settings.variables,
        )
        return resolver.resolve(cancel)

    def _publish(self, report: DetectionReport) -> None:
        with self._publish_lock:
            current = self._report
            # Overlapping refreshes: never replace a newer report
            if current is not None and current.generated_at > report.generated_at:
                logger.debug(
                    "Discarding stale report %s (current %s)",
                    report.report_id,
                    current.report_id,
                )
                return
            self._report = report

    # ── Queries ────────────────────────────────────────────────────

    def _require_report(self) -> DetectionReport:
        report = self._report
        if report is None:
            raise ReportUnavailableError("No detection report yet; call refresh() first")
        return report

    def query(self, capability: Capability | str) -> bool:
        """Resolved boolean for a capability from the current report."""
        return self._require_report().value(capability)

    def diagnostics(self, capability: Capability | str) -> list[ProbeVerdict]:
        """Ordered probe verdicts behind a capability's current value."""
        return self._require_report().diagnostics(capability)

    def result(self, capability: Capability | str) -> CapabilityResult:
        return self._require_report().result(capability)
