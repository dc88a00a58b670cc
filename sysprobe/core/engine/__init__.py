"""Resolution engine — per-capability fallback chains and refresh cycles."""

from sysprobe.core.engine.detection import DetectionEngine, EngineSettings, ReportUnavailableError
from sysprobe.core.engine.resolver import CapabilityResolver, ResolutionState

__all__ = [
    "CapabilityResolver",
    "DetectionEngine",
    "EngineSettings",
    "ReportUnavailableError",
    "ResolutionState",
]
