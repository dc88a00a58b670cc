"""
Interpreters — pure mappings from a ProbeOutcome to a Verdict.

Each interpreter encodes what one external tool's output means. They
NEVER raise: empty, malformed or failed output maps to Unknown. The only
exception to the failure rule is ``reachability``, where a failed ping
is itself the answer.

Interpreters are registered by name so probe declarations (including
ones loaded from sysprobe.yml) can reference them as plain strings.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from sysprobe.core.models.probe import ProbeOutcome, Verdict

Interpreter = Callable[[ProbeOutcome], Verdict]

INTERPRETERS: dict[str, Interpreter] = {}


def interpreter(name: str) -> Callable[[Interpreter], Interpreter]:
    """Register an interpreter function under ``name``."""

    def decorator(fn: Interpreter) -> Interpreter:
        if name in INTERPRETERS:
            raise ValueError(f"Interpreter already registered: {name}")
        INTERPRETERS[name] = fn
        return fn

    return decorator


def get_interpreter(name: str) -> Interpreter:
    """Look up an interpreter by name."""
    if name not in INTERPRETERS:
        raise KeyError(f"Unknown interpreter: {name}. Available: {sorted(INTERPRETERS)}")
    return INTERPRETERS[name]


def _usable_stdout(outcome: ProbeOutcome) -> str | None:
    """Stdout of a clean exit, or None when the outcome says nothing."""
    if outcome.invocation_failed or outcome.cancelled or outcome.exit_code != 0:
        return None
    if not outcome.stdout or not outcome.stdout.strip():
        return None
    return outcome.stdout


def _contains(text: str, marker: str) -> bool:
    return marker.lower() in text.lower()


# ── Radio / preference values ──────────────────────────────────────


@interpreter("radio_power")
def radio_power(outcome: ProbeOutcome) -> Verdict:
    """``blueutil -p``: "1" is on, "0" is off."""
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    value = out.strip()
    if value == "1":
        return Verdict.TRUE
    if value == "0":
        return Verdict.FALSE
    return Verdict.UNKNOWN


@interpreter("preference_numeric")
def preference_numeric(outcome: ProbeOutcome) -> Verdict:
    """``defaults read``: 1 or 2 is on, 0 is off.

    For the application firewall 1 means on for specific services and
    2 means on for essential services only.
    """
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    value = out.strip()
    if value in ("1", "2"):
        return Verdict.TRUE
    if value == "0":
        return Verdict.FALSE
    return Verdict.UNKNOWN


# ── IO registry ────────────────────────────────────────────────────

_STATE_ON = re.compile(r'"?State"?\s*=\s*1\b')
_STATE_OFF = re.compile(r'"?State"?\s*=\s*0\b')


@interpreter("registry_state")
def registry_state(outcome: ProbeOutcome) -> Verdict:
    """``ioreg -k State``: a ``State = 1`` entry (quoted or not) is on."""
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    if _STATE_ON.search(out):
        return Verdict.TRUE
    if _STATE_OFF.search(out):
        return Verdict.FALSE
    return Verdict.UNKNOWN


@interpreter("registry_tree")
def registry_tree(outcome: ProbeOutcome) -> Verdict:
    """``ioreg -p IOUSB``: any ``+-o`` tree node means the plane is populated."""
    out = _usable_stdout(outcome)
    if out is not None and "+-o" in out:
        return Verdict.TRUE
    return Verdict.UNKNOWN


# ── Hardware profile ───────────────────────────────────────────────

_POWER_ON_MARKERS = ("Power: On", "State: On")
_POWER_OFF_MARKERS = ("Power: Off", "State: Off")


def _hardware_profile(outcome: ProbeOutcome, *, summary: bool) -> Verdict:
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    if any(_contains(out, m) for m in _POWER_ON_MARKERS):
        return Verdict.TRUE
    if any(_contains(out, m) for m in _POWER_OFF_MARKERS):
        return Verdict.FALSE
    return Verdict.FALSE if summary else Verdict.UNKNOWN


@interpreter("hardware_profile_power")
def hardware_profile_power(outcome: ProbeOutcome) -> Verdict:
    """``system_profiler``: "Power: On"/"State: On" is on.

    A profile without any power marker says nothing.
    """
    return _hardware_profile(outcome, summary=False)


@interpreter("hardware_profile_power_summary")
def hardware_profile_power_summary(outcome: ProbeOutcome) -> Verdict:
    """Last-resort variant: a readable profile with no marker means off."""
    return _hardware_profile(outcome, summary=True)


# ── Bus / device listings (never assert absence) ───────────────────

_BUS_KEYWORDS = ("USB Bus", "USB Controller", "USB 3.1 Bus", "USB Host Controller")


@interpreter("bus_listing")
def bus_listing(outcome: ProbeOutcome) -> Verdict:
    """``system_profiler SPUSBDataType``: a bus/controller keyword is on."""
    out = _usable_stdout(outcome)
    if out is not None and any(_contains(out, k) for k in _BUS_KEYWORDS):
        return Verdict.TRUE
    return Verdict.UNKNOWN


@interpreter("device_nodes")
def device_nodes(outcome: ProbeOutcome) -> Verdict:
    """``ls /dev/cu.*``: any listed device node is on."""
    if _usable_stdout(outcome) is not None:
        return Verdict.TRUE
    return Verdict.UNKNOWN


# ── Firewall ───────────────────────────────────────────────────────


@interpreter("packet_filter_status")
def packet_filter_status(outcome: ProbeOutcome) -> Verdict:
    """``pfctl -s info``: "Status: Enabled" is on."""
    out = _usable_stdout(outcome)
    if out is not None and _contains(out, "Status: Enabled"):
        return Verdict.TRUE
    return Verdict.UNKNOWN


@interpreter("firewall_global_state")
def firewall_global_state(outcome: ProbeOutcome) -> Verdict:
    """``socketfilterfw --getglobalstate``.

    "disabled" is checked first since it contains "enabled".
    """
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    if _contains(out, "disabled"):
        return Verdict.FALSE
    if _contains(out, "enabled") or _contains(out, "blocking"):
        return Verdict.TRUE
    return Verdict.UNKNOWN


# ── Network ────────────────────────────────────────────────────────


@interpreter("service_enabled")
def service_enabled(outcome: ProbeOutcome) -> Verdict:
    """``networksetup -getnetworkserviceenabled``: exact Enabled/Disabled."""
    out = _usable_stdout(outcome)
    if out is None:
        return Verdict.UNKNOWN
    value = out.strip().lower()
    if value == "enabled":
        return Verdict.TRUE
    if value == "disabled":
        return Verdict.FALSE
    return Verdict.UNKNOWN


@interpreter("interface_status")
def interface_status(outcome: ProbeOutcome) -> Verdict:
    """``ifconfig``: any "status: active" interface is on."""
    out = _usable_stdout(outcome)
    if out is not None and _contains(out, "status: active"):
        return Verdict.TRUE
    return Verdict.UNKNOWN


@interpreter("reachability")
def reachability(outcome: ProbeOutcome) -> Verdict:
    """``ping``: exit 0 is reachable, anything else is unreachable.

    Unreachability is informative, so a failed invocation is a definite
    False. Only a cancelled probe stays Unknown.
    """
    if outcome.cancelled:
        return Verdict.UNKNOWN
    return Verdict.TRUE if outcome.succeeded else Verdict.FALSE
