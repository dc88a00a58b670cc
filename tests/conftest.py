"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from sysprobe.adapters.mock import MockProbeRunner
from sysprobe.core.models import Capability, CapabilitySpec, Probe, UnknownPolicy


@pytest.fixture(autouse=True)
def _clean_logging_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's logging env vars out of the tests."""
    for var in ("SYSPROBE_LOG_LEVEL", "SYSPROBE_LOG_FILE", "SYSPROBE_LOG_FILE_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_probe() -> Callable[..., Probe]:
    """Factory for probes with a throwaway candidate path."""

    def _make(name: str, interpreter: str = "radio_power", **kwargs) -> Probe:
        kwargs.setdefault("candidates", (f"/usr/bin/{name}",))
        return Probe(name=name, interpreter=interpreter, **kwargs)

    return _make


@pytest.fixture
def make_spec(make_probe) -> Callable[..., CapabilitySpec]:
    """Factory for a capability spec over named radio_power probes."""

    def _make(
        capability: Capability,
        names: list[str],
        on_unknown: UnknownPolicy = UnknownPolicy.FAIL_CLOSED,
    ) -> CapabilitySpec:
        return CapabilitySpec(
            capability=capability,
            probes=tuple(make_probe(n) for n in names),
            on_unknown=on_unknown,
        )

    return _make


@pytest.fixture
def mock_runner() -> MockProbeRunner:
    return MockProbeRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A sysprobe.yml keeping history and snapshot inside tmp_path."""
    config = tmp_path / "sysprobe.yml"
    config.write_text(textwrap.dedent("""\
        engine:
          probe_timeout: 2
        history_file: state/history.ndjson
        state_file: state/current.json
    """))
    return config
