"""
DetectionReport — the immutable snapshot produced by one refresh.

A report is created fresh on every refresh and never mutated. Readers
hold a reference to a whole report, so they always see a consistent
set of capability values.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sysprobe.core.models.capability import Capability, CapabilityResult, ProbeVerdict


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def generate_report_id() -> str:
    """Generate a unique report ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"rpt-{now}-{short}"


class DetectionReport(BaseModel):
    """Resolved values for every capability at one point in time."""

    model_config = ConfigDict(frozen=True)

    report_id: str = Field(default_factory=generate_report_id)
    generated_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
    cancelled: bool = False
    results: dict[Capability, CapabilityResult] = Field(default_factory=dict)

    def result(self, capability: Capability | str) -> CapabilityResult:
        cap = Capability.parse(capability)
        if cap not in self.results:
            raise KeyError(f"Capability '{cap.value}' not in report {self.report_id}")
        return self.results[cap]

    def value(self, capability: Capability | str) -> bool:
        """Resolved boolean for one capability."""
        return self.result(capability).value

    def diagnostics(self, capability: Capability | str) -> list[ProbeVerdict]:
        """Ordered probe trail for one capability."""
        return list(self.result(capability).trail)

    @property
    def defaulted(self) -> list[Capability]:
        """Capabilities whose value came from the unknown-policy default."""
        return [cap for cap, res in self.results.items() if res.defaulted]

    def summary(self) -> dict[str, bool]:
        """Display label → resolved value, in capability declaration order."""
        return {
            cap.label: self.results[cap].value
            for cap in Capability
            if cap in self.results
        }

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
