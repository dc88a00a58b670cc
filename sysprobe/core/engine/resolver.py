"""
Capability resolver — reduce one capability's fallback chain to a boolean.

Resolution is a small state machine:

    PENDING → PROBING → RESOLVED

Probes run in declared order. The first definitive verdict resolves the
capability ("first definitive wins"). With short-circuiting (the
default) later probes are not run; with full evaluation they run for
diagnostics, optionally with bounded concurrency, but reconciliation
still follows declared order. If every probe is Unknown the capability's
UnknownPolicy supplies the value.

Resolution always terminates: at most one invocation per declared probe,
no retries.
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor

from sysprobe.adapters.base import DEFAULT_TIMEOUT_S, CancelToken, ProbeRunner
from sysprobe.core.models.capability import CapabilityResult, CapabilitySpec, ProbeVerdict
from sysprobe.core.models.probe import Probe, ProbeOutcome, Verdict

logger = logging.getLogger(__name__)


class ResolutionState(str, enum.Enum):
    PENDING = "pending"
    PROBING = "probing"
    RESOLVED = "resolved"


class CapabilityResolver:
    """Runs one capability's probe chain under the fallback policy."""

    def __init__(
        self,
        spec: CapabilitySpec,
        runner: ProbeRunner,
        *,
        short_circuit: bool = True,
        probe_workers: int = 1,
        timeout: float = DEFAULT_TIMEOUT_S,
        variables: dict[str, str] | None = None,
    ):
        self._spec = spec
        self._runner = runner
        self._short_circuit = short_circuit
        self._probe_workers = max(1, probe_workers)
        self._timeout = timeout
        self._variables = dict(variables or {})
        self._state = ResolutionState.PENDING

    @property
    def spec(self) -> CapabilitySpec:
        return self._spec

    @property
    def state(self) -> ResolutionState:
        return self._state

    def resolve(self, cancel: CancelToken | None = None) -> CapabilityResult:
        """Run the chain and return the resolved result (never raises)."""
        self._state = ResolutionState.PROBING
        cap = self._spec.capability

        if self._short_circuit:
            trail = self._run_sequential(cancel)
        else:
            trail = self._run_all(cancel)

        result = self._reconcile(trail)
        self._state = ResolutionState.RESOLVED

        if result.defaulted:
            logger.warning(
                "%s unresolved: no probe was definitive (%s); using %s default → %s",
                cap.label,
                ", ".join(f"{e.probe}={e.verdict.value}" for e in trail) or "no probes ran",
                result.policy.value,
                result.value,
            )
        else:
            logger.info("%s → %s (via %s)", cap.label, result.value, result.source)

        return result

    # ── Internals ──────────────────────────────────────────────────

    def _run_sequential(self, cancel: CancelToken | None) -> list[ProbeVerdict]:
        trail: list[ProbeVerdict] = []
        for probe in self._spec.probes:
            if cancel is not None and cancel.cancelled:
                break
            entry = self._run_probe(probe, cancel)
            trail.append(entry)
            if entry.verdict.is_definite:
                break
        return trail

    def _run_all(self, cancel: CancelToken | None) -> list[ProbeVerdict]:
        probes = self._spec.probes
        if self._probe_workers == 1:
            return [
                self._run_probe(p, cancel)
                for p in probes
                if not (cancel is not None and cancel.cancelled)
            ]

        with ThreadPoolExecutor(
            max_workers=min(self._probe_workers, len(probes)),
            thread_name_prefix=f"probe-{self._spec.capability.value}",
        ) as pool:
            futures = [pool.submit(self._run_probe, p, cancel) for p in probes]
            # Collected in declared order, not completion order
            return [f.result() for f in futures]

    def _run_probe(self, probe: Probe, cancel: CancelToken | None) -> ProbeVerdict:
        """Invoke one probe and interpret it; failures become Unknown."""
        try:
            outcome = self._runner.invoke(
                probe,
                variables=self._variables,
                timeout=self._timeout,
                cancel=cancel,
            )
        except Exception as e:
            logger.error("Runner %s raised for probe %s: %s", self._runner.name, probe.name, e)
            outcome = ProbeOutcome.failure(f"Unexpected runner error: {e}")

        try:
            verdict = probe.interpret(outcome)
        except Exception as e:
            logger.error("Interpreter %s raised for probe %s: %s", probe.interpreter, probe.name, e)
            verdict = Verdict.UNKNOWN

        if outcome.cancelled:
            verdict = Verdict.UNKNOWN

        logger.debug(
            "  %s/%s → %s (exit=%s, %dms)",
            self._spec.capability.value,
            probe.name,
            verdict.value,
            outcome.exit_code,
            outcome.duration_ms,
        )

        return ProbeVerdict(
            probe=probe.name,
            verdict=verdict,
            executable=outcome.executable,
            exit_code=outcome.exit_code,
            duration_ms=outcome.duration_ms,
            invocation_failed=outcome.invocation_failed,
            cancelled=outcome.cancelled,
            error=outcome.error,
        )

    def _reconcile(self, trail: list[ProbeVerdict]) -> CapabilityResult:
        """First definitive verdict in declared order wins."""
        spec = self._spec
        for entry in trail:
            if entry.verdict.is_definite:
                return CapabilityResult(
                    capability=spec.capability,
                    value=entry.verdict is Verdict.TRUE,
                    source=entry.probe,
                    policy=spec.on_unknown,
                    trail=tuple(trail),
                )

        return CapabilityResult(
            capability=spec.capability,
            value=spec.on_unknown.value_when_unknown,
            source=None,
            defaulted=True,
            policy=spec.on_unknown,
            trail=tuple(trail),
        )
