"""
Probe runner base — the contract between the engine and external programs.

The engine only talks to external query tools through a ProbeRunner.
Runners resolve a probe's candidate locations, invoke the first one that
exists, and hand back a ProbeOutcome. They NEVER raise.

To create a new runner:
    1. Subclass ProbeRunner
    2. Implement name, execute (and optionally locate)
"""

from __future__ import annotations

import logging
import shutil
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from sysprobe.core.models.probe import Probe, ProbeOutcome

logger = logging.getLogger(__name__)

# Per-invocation timeout when the caller does not pass one
DEFAULT_TIMEOUT_S = 5.0


class CancelToken:
    """Cooperative cancellation signal threaded from the caller.

    Runners poll it while a subprocess is running; resolvers check it
    between probes. Cancelling is one-way.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"<CancelToken cancelled={self.cancelled}>"


class ProbeRunner(ABC):
    """Abstract base class for probe runners."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'subprocess', 'mock')."""

    def locate(self, candidates: tuple[str, ...] | list[str]) -> str | None:
        """Return the first candidate executable that exists.

        Absolute or relative paths are checked on disk; bare names are
        looked up on PATH. Order is the declared order.
        """
        for candidate in candidates:
            if "/" in candidate:
                if Path(candidate).is_file():
                    return candidate
            else:
                found = shutil.which(candidate)
                if found:
                    return found
        return None

    @abstractmethod
    def execute(
        self,
        executable: str,
        args: list[str],
        timeout: float = DEFAULT_TIMEOUT_S,
        cancel: CancelToken | None = None,
    ) -> ProbeOutcome:
        """Run one program and capture its outcome.

        MUST never raise. All failures are captured in the ProbeOutcome
        with ``invocation_failed=True``.
        """

    def invoke(
        self,
        probe: Probe,
        variables: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        cancel: CancelToken | None = None,
    ) -> ProbeOutcome:
        """Resolve a probe's executable and run it."""
        if cancel is not None and cancel.cancelled:
            return ProbeOutcome.failure("cancelled before start", cancelled=True)

        start = time.monotonic()
        try:
            executable = self.locate(probe.candidates)
        except Exception as e:
            executable = None
            logger.warning("Probe %s: candidate lookup failed: %s", probe.name, e)

        if executable is None:
            logger.warning(
                "Probe %s: no candidate found among %s",
                probe.name,
                list(probe.candidates),
            )
            return ProbeOutcome.failure(
                f"No executable found among {list(probe.candidates)}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        return self.execute(
            executable,
            probe.render_args(variables),
            timeout=timeout,
            cancel=cancel,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
