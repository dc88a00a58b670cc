"""
Tests for the built-in probe catalog and its configuration overrides.
"""

import pytest

from sysprobe.core.catalog import (
    DEFAULT_POLICIES,
    CatalogError,
    build_catalog,
    default_catalog,
    validate_catalog,
)
from sysprobe.core.models import Capability, ProbeOverride, UnknownPolicy


class TestDefaultCatalog:
    def test_policies_pinned(self):
        assert DEFAULT_POLICIES == {
            Capability.BLUETOOTH: UnknownPolicy.FAIL_CLOSED,
            Capability.USB: UnknownPolicy.FAIL_OPEN,
            Capability.FIREWALL: UnknownPolicy.FAIL_CLOSED,
            Capability.NETWORK: UnknownPolicy.FAIL_CLOSED,
        }

    def test_every_capability_has_a_chain(self):
        catalog = default_catalog()
        assert set(catalog) == set(Capability)
        for spec in catalog.values():
            assert spec.probes

    def test_chain_order(self):
        catalog = default_catalog()
        assert catalog[Capability.BLUETOOTH].probe_names == [
            "blueutil",
            "ioreg-bluetooth",
            "system_profiler-bluetooth",
            "defaults-bluetooth",
        ]
        assert catalog[Capability.USB].probe_names == [
            "system_profiler-usb",
            "ioreg-usb",
            "dev-serial-nodes",
        ]
        assert catalog[Capability.FIREWALL].probe_names == [
            "socketfilterfw",
            "defaults-alf",
            "pfctl",
        ]
        assert catalog[Capability.NETWORK].probe_names == ["networksetup", "ifconfig", "ping"]

    def test_blueutil_candidates_in_priority_order(self):
        blueutil = default_catalog()[Capability.BLUETOOTH].probes[0]
        assert blueutil.candidates[0] == "/opt/homebrew/bin/blueutil"

    def test_validates(self):
        validate_catalog(default_catalog())


class TestBuildCatalog:
    def test_no_overrides_matches_default(self):
        assert build_catalog() == default_catalog()

    def test_policy_override(self):
        catalog = build_catalog(policy_overrides={Capability.USB: UnknownPolicy.FAIL_CLOSED})
        assert catalog[Capability.USB].on_unknown is UnknownPolicy.FAIL_CLOSED
        assert catalog[Capability.BLUETOOTH].on_unknown is UnknownPolicy.FAIL_CLOSED

    def test_disable_probe(self):
        catalog = build_catalog(disabled_probes=["pfctl"])
        assert catalog[Capability.FIREWALL].probe_names == ["socketfilterfw", "defaults-alf"]

    def test_disabling_whole_chain_rejected(self):
        with pytest.raises(CatalogError, match="no usable probes"):
            build_catalog(disabled_probes=["networksetup", "ifconfig", "ping"])

    def test_unknown_probe_rejected(self):
        with pytest.raises(CatalogError, match="Unknown probe"):
            build_catalog(disabled_probes=["telepathy"])

    def test_probe_override(self):
        catalog = build_catalog(
            probe_overrides={"blueutil": ProbeOverride(candidates=["/custom/blueutil"])}
        )
        blueutil = catalog[Capability.BLUETOOTH].probes[0]
        assert blueutil.candidates == ("/custom/blueutil",)
        assert blueutil.args == ("-p",)

    def test_invalid_override_rejected(self):
        with pytest.raises(CatalogError, match="Invalid override"):
            build_catalog(probe_overrides={"blueutil": ProbeOverride(candidates=[])})
