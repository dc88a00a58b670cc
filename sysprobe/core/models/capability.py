"""
Capability models — what is being detected and how it was resolved.

A CapabilitySpec is the declared fallback chain for one capability plus
its named default policy. A CapabilityResult is the resolved boolean and
the ordered diagnostic trail that produced it.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sysprobe.core.models.probe import Probe, Verdict


class Capability(str, enum.Enum):
    """The fixed set of OS-level capabilities."""

    BLUETOOTH = "bluetooth"
    USB = "usb"
    FIREWALL = "firewall"
    NETWORK = "network"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str | Capability) -> Capability:
        """Look up a capability by value or display label, case-insensitive."""
        if isinstance(value, Capability):
            return value
        key = value.strip().lower()
        for cap in cls:
            if key in (cap.value, cap.label.lower()):
                return cap
        raise ValueError(
            f"Unknown capability: {value!r}. Available: {[c.value for c in cls]}"
        )


_LABELS = {
    Capability.BLUETOOTH: "Bluetooth",
    Capability.USB: "USB",
    Capability.FIREWALL: "Firewall",
    Capability.NETWORK: "Network",
}


class UnknownPolicy(str, enum.Enum):
    """Value assumed when no probe for a capability is definitive."""

    FAIL_CLOSED = "fail_closed"   # uncertainty reads as disabled
    FAIL_OPEN = "fail_open"       # uncertainty reads as present/enabled

    @property
    def value_when_unknown(self) -> bool:
        return self is UnknownPolicy.FAIL_OPEN


class CapabilitySpec(BaseModel):
    """Declared fallback chain for one capability."""

    model_config = ConfigDict(frozen=True)

    capability: Capability
    probes: tuple[Probe, ...]
    on_unknown: UnknownPolicy = UnknownPolicy.FAIL_CLOSED

    @field_validator("probes")
    @classmethod
    def _require_probes(cls, value: tuple[Probe, ...]) -> tuple[Probe, ...]:
        if not value:
            raise ValueError("capability needs at least one probe")
        names = [p.name for p in value]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate probe names: {names}")
        return value

    @property
    def probe_names(self) -> list[str]:
        return [p.name for p in self.probes]


class ProbeVerdict(BaseModel):
    """One entry in a capability's diagnostic trail."""

    model_config = ConfigDict(frozen=True)

    probe: str
    verdict: Verdict
    executable: str | None = None
    exit_code: int | None = None
    duration_ms: int = 0
    invocation_failed: bool = False
    cancelled: bool = False
    error: str | None = None


class CapabilityResult(BaseModel):
    """Resolved value for one capability plus how it was reached."""

    model_config = ConfigDict(frozen=True)

    capability: Capability
    value: bool
    source: str | None = None      # probe that supplied the definitive verdict
    defaulted: bool = False        # True when the UnknownPolicy was applied
    policy: UnknownPolicy = UnknownPolicy.FAIL_CLOSED
    trail: tuple[ProbeVerdict, ...] = Field(default_factory=tuple)

    @property
    def verdicts(self) -> list[tuple[str, Verdict]]:
        """Ordered (probe name, verdict) pairs."""
        return [(entry.probe, entry.verdict) for entry in self.trail]
