"""
Tests for the detection engine — refresh cycles, publication, queries.
"""

from __future__ import annotations

import threading

import pytest

from sysprobe.adapters import CancelToken, MockProbeRunner
from sysprobe.core.catalog import CatalogError, default_catalog
from sysprobe.core.engine import DetectionEngine, EngineSettings, ReportUnavailableError
from sysprobe.core.models import Capability
from sysprobe.core.use_cases.refresh import mock_runner as healthy_runner


@pytest.fixture
def engine() -> DetectionEngine:
    return DetectionEngine(default_catalog(), healthy_runner())


class TestConstruction:
    def test_empty_catalog_rejected(self, mock_runner):
        with pytest.raises(CatalogError, match="no capabilities"):
            DetectionEngine({}, mock_runner)

    def test_mismatched_key_rejected(self, make_spec, mock_runner):
        catalog = {Capability.USB: make_spec(Capability.BLUETOOTH, ["a"])}
        with pytest.raises(CatalogError, match="does not match"):
            DetectionEngine(catalog, mock_runner)

    def test_capabilities_in_declaration_order(self, engine):
        assert engine.capabilities == [
            Capability.BLUETOOTH,
            Capability.USB,
            Capability.FIREWALL,
            Capability.NETWORK,
        ]


class TestRefresh:
    def test_report_covers_every_capability(self, engine):
        report = engine.refresh()
        assert set(report.results) == set(Capability)
        assert report.summary() == {
            "Bluetooth": True,
            "USB": True,
            "Firewall": True,
            "Network": True,
        }

    def test_report_is_published(self, engine):
        assert engine.report is None
        report = engine.refresh()
        assert engine.report is report

    def test_query_and_diagnostics(self, engine):
        engine.refresh()
        assert engine.query(Capability.FIREWALL) is True
        assert engine.query("network") is True
        trail = engine.diagnostics(Capability.FIREWALL)
        assert [e.probe for e in trail] == ["socketfilterfw"]

    def test_nothing_installed_applies_policies(self, mock_runner):
        engine = DetectionEngine(default_catalog(), mock_runner)
        report = engine.refresh()
        assert report.value(Capability.BLUETOOTH) is False
        assert report.value(Capability.USB) is True
        assert report.value(Capability.FIREWALL) is False
        # ping's failure to launch is itself a definitive answer
        assert report.value(Capability.NETWORK) is False
        assert set(report.defaulted) == {Capability.BLUETOOTH, Capability.USB, Capability.FIREWALL}

    def test_idempotent_with_stable_environment(self, engine):
        first = engine.refresh()
        second = engine.refresh()
        assert first.report_id != second.report_id
        assert first.summary() == second.summary()

    def test_full_mode_runs_every_probe(self):
        runner = healthy_runner()
        engine = DetectionEngine(
            default_catalog(),
            runner,
            EngineSettings(short_circuit=False, probe_workers=2),
        )
        report = engine.refresh()
        assert len(report.diagnostics(Capability.BLUETOOTH)) == 4
        assert report.result(Capability.BLUETOOTH).source == "blueutil"

    def test_concurrent_matches_sequential(self):
        parallel = DetectionEngine(default_catalog(), healthy_runner(), EngineSettings(max_workers=4))
        serial = DetectionEngine(default_catalog(), healthy_runner(), EngineSettings(max_workers=1))
        assert parallel.refresh().summary() == serial.refresh().summary()

    def test_variables_reach_probe_arguments(self):
        runner = MockProbeRunner()
        settings = EngineSettings(variables={"network_service": "Ethernet", "ping_host": "10.0.0.1"})
        DetectionEngine(default_catalog(), runner, settings).refresh()
        calls = {c.probe: c.args for c in runner.call_log}
        assert calls["networksetup"] == ["-getnetworkserviceenabled", "Ethernet"]
        assert calls["ping"][-1] == "10.0.0.1"


class TestQueriesBeforeRefresh:
    def test_query_raises(self, engine):
        with pytest.raises(ReportUnavailableError):
            engine.query(Capability.USB)

    def test_diagnostics_raises(self, engine):
        with pytest.raises(ReportUnavailableError):
            engine.diagnostics(Capability.USB)


class TestCancellation:
    def test_cancel_mid_refresh_is_not_published(self):
        slow = MockProbeRunner(delay=10)
        engine = DetectionEngine(default_catalog(), slow)
        token = CancelToken()
        threading.Timer(0.1, token.cancel).start()
        report = engine.refresh(token)

        assert report.cancelled
        assert engine.report is None
        # Each chain stopped at its first, abandoned probe
        assert slow.call_count == len(Capability)

    def test_cancel_keeps_previous_report(self):
        runner = healthy_runner()
        engine = DetectionEngine(default_catalog(), runner)
        previous = engine.refresh()

        token = CancelToken()
        token.cancel()
        report = engine.refresh(token)

        assert report.cancelled
        assert engine.report is previous
        assert engine.query(Capability.USB) is True


class TestPublication:
    def test_readers_see_whole_reports(self, engine):
        """Concurrent readers never observe a partially built report."""
        engine.refresh()
        seen: list[bool] = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                report = engine.report
                seen.append(set(report.results) == set(Capability))

        t = threading.Thread(target=reader)
        t.start()
        for _ in range(5):
            engine.refresh()
        stop.set()
        t.join()

        assert seen and all(seen)
