"""
Probe catalog — the built-in fallback chains for every capability.

These are the macOS query tools the detector knows about, in the order
they are trusted. Order matters: the first definitive verdict wins.

The unknown-policy defaults are pinned in DEFAULT_POLICIES. USB fails
open (uncertainty reads as present), everything else fails closed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from pydantic import ValidationError

from sysprobe.core.models.capability import Capability, CapabilitySpec, UnknownPolicy
from sysprobe.core.models.probe import Probe, ProbeOverride

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised when the probe catalog is misconfigured."""


# ── Unknown-policy defaults ────────────────────────────────────────

DEFAULT_POLICIES: dict[Capability, UnknownPolicy] = {
    Capability.BLUETOOTH: UnknownPolicy.FAIL_CLOSED,
    Capability.USB: UnknownPolicy.FAIL_OPEN,
    Capability.FIREWALL: UnknownPolicy.FAIL_CLOSED,
    Capability.NETWORK: UnknownPolicy.FAIL_CLOSED,
}

# Argument template variables and their defaults
DEFAULT_VARIABLES: dict[str, str] = {
    "network_service": "Wi-Fi",
    "ping_host": "8.8.8.8",
}


# ── Probe chains ───────────────────────────────────────────────────

BLUETOOTH_PROBES: tuple[Probe, ...] = (
    Probe(
        name="blueutil",
        candidates=(
            "/opt/homebrew/bin/blueutil",
            "/usr/local/bin/blueutil",
            "/usr/bin/blueutil",
        ),
        args=("-p",),
        interpreter="radio_power",
        description="Bluetooth radio power via blueutil",
    ),
    Probe(
        name="ioreg-bluetooth",
        candidates=("/usr/sbin/ioreg",),
        args=("-r", "-k", "State", "-n", "IOBluetoothHCIController"),
        interpreter="registry_state",
        description="Bluetooth HCI controller state in the IO registry",
    ),
    Probe(
        name="system_profiler-bluetooth",
        candidates=("/usr/sbin/system_profiler",),
        args=("SPBluetoothDataType",),
        interpreter="hardware_profile_power",
        description="Bluetooth section of the hardware profile",
    ),
    Probe(
        name="defaults-bluetooth",
        candidates=("/usr/bin/defaults",),
        args=("read", "/Library/Preferences/com.apple.Bluetooth", "ControllerPowerState"),
        interpreter="preference_numeric",
        description="Bluetooth controller power preference",
    ),
)

USB_PROBES: tuple[Probe, ...] = (
    Probe(
        name="system_profiler-usb",
        candidates=("/usr/sbin/system_profiler",),
        args=("SPUSBDataType",),
        interpreter="bus_listing",
        description="USB buses and controllers in the hardware profile",
    ),
    Probe(
        name="ioreg-usb",
        candidates=("/usr/sbin/ioreg",),
        args=("-p", "IOUSB"),
        interpreter="registry_tree",
        description="IOUSB plane of the IO registry",
    ),
    Probe(
        name="dev-serial-nodes",
        candidates=("/bin/ls",),
        args=("/dev/cu.*",),
        interpreter="device_nodes",
        expand_globs=True,
        description="USB serial device nodes under /dev",
    ),
)

FIREWALL_PROBES: tuple[Probe, ...] = (
    Probe(
        name="socketfilterfw",
        candidates=("/usr/libexec/ApplicationFirewall/socketfilterfw",),
        args=("--getglobalstate",),
        interpreter="firewall_global_state",
        description="Application firewall global state",
    ),
    Probe(
        name="defaults-alf",
        candidates=("/usr/bin/defaults",),
        args=("read", "/Library/Preferences/com.apple.alf", "globalstate"),
        interpreter="preference_numeric",
        description="Application firewall preference",
    ),
    Probe(
        name="pfctl",
        candidates=("/sbin/pfctl",),
        args=("-s", "info"),
        interpreter="packet_filter_status",
        description="Packet filter status",
    ),
)

NETWORK_PROBES: tuple[Probe, ...] = (
    Probe(
        name="networksetup",
        candidates=("/usr/sbin/networksetup",),
        args=("-getnetworkserviceenabled", "{network_service}"),
        interpreter="service_enabled",
        description="Network service enablement",
    ),
    Probe(
        name="ifconfig",
        candidates=("/sbin/ifconfig",),
        args=(),
        interpreter="interface_status",
        description="Active network interfaces",
    ),
    Probe(
        name="ping",
        candidates=("/sbin/ping",),
        args=("-c", "1", "-t", "2", "{ping_host}"),
        interpreter="reachability",
        description="Reachability of a well-known host",
    ),
)

_BUILTIN_CHAINS: dict[Capability, tuple[Probe, ...]] = {
    Capability.BLUETOOTH: BLUETOOTH_PROBES,
    Capability.USB: USB_PROBES,
    Capability.FIREWALL: FIREWALL_PROBES,
    Capability.NETWORK: NETWORK_PROBES,
}


def default_catalog() -> dict[Capability, CapabilitySpec]:
    """The built-in catalog with today's unknown-policy defaults."""
    return {
        cap: CapabilitySpec(capability=cap, probes=probes, on_unknown=DEFAULT_POLICIES[cap])
        for cap, probes in _BUILTIN_CHAINS.items()
    }


def build_catalog(
    policy_overrides: Mapping[Capability, UnknownPolicy] | None = None,
    probe_overrides: Mapping[str, ProbeOverride] | None = None,
    disabled_probes: Iterable[str] = (),
) -> dict[Capability, CapabilitySpec]:
    """Build a catalog from the built-in chains plus configuration.

    Args:
        policy_overrides: Replacement UnknownPolicy per capability.
        probe_overrides: Candidate/argument overrides keyed by probe name.
        disabled_probes: Probe names to drop from their chains.

    Raises:
        CatalogError: If an override names an unknown probe, or a chain
            ends up empty.
    """
    policy_overrides = dict(policy_overrides or {})
    probe_overrides = dict(probe_overrides or {})
    disabled = set(disabled_probes)

    known = {p.name for chain in _BUILTIN_CHAINS.values() for p in chain}
    unknown = (set(probe_overrides) | disabled) - known
    if unknown:
        raise CatalogError(f"Unknown probe(s) in configuration: {sorted(unknown)}")

    catalog: dict[Capability, CapabilitySpec] = {}
    for cap, chain in _BUILTIN_CHAINS.items():
        probes = []
        for probe in chain:
            if probe.name in disabled:
                logger.debug("Probe %s disabled by configuration", probe.name)
                continue
            override = probe_overrides.get(probe.name)
            if override is not None:
                try:
                    probe = override.apply(probe)
                except ValidationError as e:
                    raise CatalogError(f"Invalid override for probe '{probe.name}': {e}") from e
            probes.append(probe)

        policy = policy_overrides.get(cap, DEFAULT_POLICIES[cap])
        try:
            catalog[cap] = CapabilitySpec(capability=cap, probes=tuple(probes), on_unknown=policy)
        except ValidationError as e:
            raise CatalogError(f"Capability '{cap.value}' has no usable probes: {e}") from e

    return catalog


def validate_catalog(catalog: Mapping[Capability, CapabilitySpec]) -> None:
    """Startup-time validation of a catalog handed to the engine.

    Raises:
        CatalogError: On an empty catalog, a key/spec mismatch or a
            capability without probes.
    """
    if not catalog:
        raise CatalogError("Catalog declares no capabilities")
    for cap, spec in catalog.items():
        if spec.capability is not cap:
            raise CatalogError(
                f"Catalog key '{cap}' does not match spec capability '{spec.capability}'"
            )
        if not spec.probes:
            raise CatalogError(f"Capability '{cap.value}' has an empty probe list")
