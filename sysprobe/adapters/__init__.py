"""Probe runners — bindings to the external query programs.

Public re-exports for convenient access.
"""

from sysprobe.adapters.base import CancelToken, ProbeRunner
from sysprobe.adapters.mock import MockProbeRunner
from sysprobe.adapters.shell.command import SubprocessProbeRunner

__all__ = [
    "CancelToken",
    "MockProbeRunner",
    "ProbeRunner",
    "SubprocessProbeRunner",
]
