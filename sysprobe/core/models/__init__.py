"""
Domain models — Pydantic types for the detection engine.

All models are re-exported here for convenient access:

    from sysprobe.core.models import Capability, Probe, ProbeOutcome, DetectionReport
"""

from sysprobe.core.models.capability import (
    Capability,
    CapabilityResult,
    CapabilitySpec,
    ProbeVerdict,
    UnknownPolicy,
)
from sysprobe.core.models.probe import Probe, ProbeOutcome, ProbeOverride, Verdict
from sysprobe.core.models.report import DetectionReport

__all__ = [
    # capability.py
    "Capability",
    "CapabilityResult",
    "CapabilitySpec",
    # report.py
    "DetectionReport",
    # probe.py
    "Probe",
    "ProbeOutcome",
    "ProbeOverride",
    "ProbeVerdict",
    "UnknownPolicy",
    "Verdict",
]
