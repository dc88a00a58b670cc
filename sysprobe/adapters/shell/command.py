"""
Subprocess probe runner — invoke external query programs.

This is the SINGLE PLACE where probe subprocesses are spawned. Standard
output and standard error are drained concurrently with waiting for exit
(``Popen.communicate``), every invocation is bounded by a timeout, and a
CancelToken is polled so a refresh can be abandoned mid-flight.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time

from sysprobe.adapters.base import DEFAULT_TIMEOUT_S, CancelToken, ProbeRunner
from sysprobe.core.models.probe import ProbeOutcome

logger = logging.getLogger(__name__)

# How often a running probe checks its deadline and cancel token
POLL_INTERVAL_S = 0.1

# Grace period for reaping a killed process
_REAP_TIMEOUT_S = 1.0


class SubprocessProbeRunner(ProbeRunner):
    """Run probe programs as real subprocesses.

    Each program runs in its own session so a timeout or cancellation
    can kill the whole process group, including any children that still
    hold the output pipes open.
    """

    def __init__(
        self,
        poll_interval: float = POLL_INTERVAL_S,
        env: dict[str, str] | None = None,
    ):
        self._poll_interval = poll_interval
        self._env = env

    @property
    def name(self) -> str:
        return "subprocess"

    def execute(
        self,
        executable: str,
        args: list[str],
        timeout: float = DEFAULT_TIMEOUT_S,
        cancel: CancelToken | None = None,
    ) -> ProbeOutcome:
        command = [executable, *args]
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._env,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.warning("Cannot launch %s %s: %s", executable, " ".join(args), e)
            return ProbeOutcome.failure(
                f"Cannot launch {executable}: {e}",
                executable=executable,
                duration_ms=_elapsed_ms(start),
            )

        deadline = start + timeout
        abandoned: str | None = None
        cancelled = False
        stdout = stderr = ""

        try:
            while True:
                if cancel is not None and cancel.cancelled:
                    abandoned, cancelled = "cancelled", True
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    abandoned = f"timed out after {timeout:g}s"
                    break
                try:
                    stdout, stderr = proc.communicate(
                        timeout=min(self._poll_interval, remaining)
                    )
                    break
                except subprocess.TimeoutExpired:
                    continue
        except Exception as e:
            abandoned = f"error while waiting: {e}"

        if abandoned is not None:
            _kill(proc)
            logger.warning(
                "Probe command %s %s abandoned after %dms: %s",
                executable,
                " ".join(args),
                _elapsed_ms(start),
                abandoned,
            )
            return ProbeOutcome.failure(
                f"{executable} {abandoned}",
                cancelled=cancelled,
                executable=executable,
                duration_ms=_elapsed_ms(start),
            )

        elapsed_ms = _elapsed_ms(start)
        logger.debug(
            "Probe command %s %s finished in %dms (exit=%s, stderr=%s)",
            executable,
            " ".join(args),
            elapsed_ms,
            proc.returncode,
            "yes" if stderr.strip() else "no",
        )

        return ProbeOutcome.completed(
            exit_code=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            executable=executable,
            duration_ms=elapsed_ms,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _kill(proc: subprocess.Popen) -> None:
    """Kill a probe's process group and reap it."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError, OSError):
        try:
            proc.kill()
        except OSError:
            pass

    try:
        proc.communicate(timeout=_REAP_TIMEOUT_S)
    except (subprocess.TimeoutExpired, OSError, ValueError):
        logger.debug("Probe process %d not reaped within %.1fs", proc.pid, _REAP_TIMEOUT_S)
