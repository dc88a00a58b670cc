"""
Mock probe runner — test double for probe invocations.

Used in mock mode and in tests to simulate external tools without
spawning anything. Outcomes are scripted per probe name; unscripted
probes behave as if their program were missing.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from sysprobe.adapters.base import DEFAULT_TIMEOUT_S, CancelToken, ProbeRunner
from sysprobe.core.models.probe import Probe, ProbeOutcome


@dataclass
class MockCall:
    """One recorded invocation."""

    probe: str
    executable: str | None
    args: list[str]


class MockProbeRunner(ProbeRunner):
    """Scriptable runner for tests.

    By default every probe is "not installed". Configure responses with
    ``set_output`` / ``set_outcome`` / ``set_missing`` / ``set_error``.
    """

    def __init__(
        self,
        runner_name: str = "mock",
        default_outcome: ProbeOutcome | None = None,
        delay: float = 0.0,
    ):
        self._name = runner_name
        self._default = default_outcome or ProbeOutcome.failure("[mock] not installed")
        self._delay = delay
        self._responses: dict[str, ProbeOutcome] = {}
        self._errors: dict[str, Exception] = {}
        self._call_log: list[MockCall] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[MockCall]:
        """All invocations this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_for(self, probe_name: str) -> int:
        return sum(1 for c in self._call_log if c.probe == probe_name)

    def set_outcome(self, probe_name: str, outcome: ProbeOutcome) -> None:
        """Set a custom outcome for a specific probe."""
        self._responses[probe_name] = outcome

    def set_output(self, probe_name: str, stdout: str, exit_code: int = 0, stderr: str = "") -> None:
        """Script a completed run with the given output."""
        self._responses[probe_name] = ProbeOutcome.completed(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            executable=f"/mock/{probe_name}",
        )

    def set_missing(self, probe_name: str) -> None:
        """Configure a probe's program as not installed."""
        self._responses[probe_name] = ProbeOutcome.failure(f"[mock] {probe_name} not installed")

    def set_error(self, probe_name: str, error: Exception) -> None:
        """Make the runner raise for a probe (runners must not, but tests check)."""
        self._errors[probe_name] = error

    def locate(self, candidates: tuple[str, ...] | list[str]) -> str | None:
        return candidates[0] if candidates else None

    def invoke(
        self,
        probe: Probe,
        variables: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        cancel: CancelToken | None = None,
    ) -> ProbeOutcome:
        with self._lock:
            self._call_log.append(
                MockCall(
                    probe=probe.name,
                    executable=self.locate(probe.candidates),
                    args=probe.render_args(variables),
                )
            )

        if probe.name in self._errors:
            raise self._errors[probe.name]

        if self._delay:
            if cancel is not None:
                if cancel.wait(self._delay):
                    return ProbeOutcome.failure("[mock] cancelled", cancelled=True)
            else:
                time.sleep(self._delay)

        if cancel is not None and cancel.cancelled:
            return ProbeOutcome.failure("[mock] cancelled", cancelled=True)

        return self._responses.get(probe.name, self._default)

    def execute(
        self,
        executable: str,
        args: list[str],
        timeout: float = DEFAULT_TIMEOUT_S,
        cancel: CancelToken | None = None,
    ) -> ProbeOutcome:
        for outcome in self._responses.values():
            if outcome.executable == executable:
                return outcome
        return self._default

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._responses.clear()
        self._errors.clear()
