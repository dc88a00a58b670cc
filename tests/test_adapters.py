"""
Tests for probe runners — base contract, subprocess runner, mock runner.
"""

from __future__ import annotations

import stat
import threading
import time
from pathlib import Path

import pytest

from sysprobe.adapters import CancelToken, MockProbeRunner, SubprocessProbeRunner
from sysprobe.core.models import Probe, ProbeOutcome


def _script(tmp_path: Path, name: str, body: str) -> Path:
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def _probe(*candidates: str | Path, args: tuple[str, ...] = ()) -> Probe:
    return Probe(
        name="test-probe",
        candidates=tuple(str(c) for c in candidates),
        args=args,
        interpreter="radio_power",
    )


# ── CancelToken ──────────────────────────────────────────────────────


class TestCancelToken:
    def test_one_way(self):
        token = CancelToken()
        assert not token.cancelled
        token.cancel()
        token.cancel()
        assert token.cancelled

    def test_wait_returns_early_when_cancelled(self):
        token = CancelToken()
        threading.Timer(0.05, token.cancel).start()
        start = time.monotonic()
        assert token.wait(5.0) is True
        assert time.monotonic() - start < 2.0


# ── Candidate resolution ─────────────────────────────────────────────


class TestLocate:
    def test_first_existing_candidate_wins(self, tmp_path: Path):
        first = _script(tmp_path, "first", "echo 1")
        second = _script(tmp_path, "second", "echo 0")
        runner = SubprocessProbeRunner()
        located = runner.locate([str(tmp_path / "absent"), str(first), str(second)])
        assert located == str(first)

    def test_bare_name_uses_path(self, tmp_path: Path, monkeypatch):
        script = _script(tmp_path, "mytool", "echo 1")
        monkeypatch.setenv("PATH", str(tmp_path))
        assert SubprocessProbeRunner().locate(["mytool"]) == str(script)

    def test_nothing_found(self, tmp_path: Path):
        assert SubprocessProbeRunner().locate([str(tmp_path / "nope")]) is None


# ── Subprocess runner ────────────────────────────────────────────────


class TestSubprocessRunner:
    def test_captures_stdout_and_exit(self, tmp_path: Path):
        script = _script(tmp_path, "tool", "echo 1")
        outcome = SubprocessProbeRunner().invoke(_probe(script))
        assert outcome.exit_code == 0
        assert outcome.stdout.strip() == "1"
        assert not outcome.invocation_failed
        assert outcome.executable == str(script)

    def test_nonzero_exit_is_not_invocation_failure(self, tmp_path: Path):
        script = _script(tmp_path, "tool", "echo oops >&2\nexit 3")
        outcome = SubprocessProbeRunner().invoke(_probe(script))
        assert outcome.exit_code == 3
        assert "oops" in outcome.stderr
        assert not outcome.invocation_failed

    def test_args_are_passed(self, tmp_path: Path):
        script = _script(tmp_path, "tool", 'echo "$1-$2"')
        probe = _probe(script, args=("{a}", "b"))
        outcome = SubprocessProbeRunner().invoke(probe, variables={"a": "x"})
        assert outcome.stdout.strip() == "x-b"

    def test_large_output_does_not_deadlock(self, tmp_path: Path):
        # Far more than a pipe buffer on both streams
        body = "i=0\nwhile [ $i -lt 3000 ]; do\n  echo line-$i-xxxxxxxxxxxxxxxxxxxxxxxxxxxx\n  echo err-$i >&2\n  i=$((i+1))\ndone"
        script = _script(tmp_path, "chatty", body)
        outcome = SubprocessProbeRunner().invoke(_probe(script), timeout=20)
        assert outcome.exit_code == 0
        assert outcome.stdout.count("\n") == 3000

    def test_missing_binary(self, tmp_path: Path):
        outcome = SubprocessProbeRunner().invoke(_probe(tmp_path / "absent"))
        assert outcome.invocation_failed
        assert outcome.exit_code is None
        assert outcome.stdout == ""
        assert "No executable found" in (outcome.error or "")

    def test_falls_back_to_later_candidate(self, tmp_path: Path):
        script = _script(tmp_path, "tool", "echo 0")
        outcome = SubprocessProbeRunner().invoke(_probe(tmp_path / "absent", script))
        assert outcome.stdout.strip() == "0"

    def test_not_executable_is_launch_failure(self, tmp_path: Path):
        path = tmp_path / "plain"
        path.write_text("echo 1\n")
        path.chmod(0o644)
        outcome = SubprocessProbeRunner().invoke(_probe(path))
        assert outcome.invocation_failed
        assert "Cannot launch" in (outcome.error or "")

    def test_timeout(self, tmp_path: Path):
        script = _script(tmp_path, "slow", "sleep 30")
        start = time.monotonic()
        outcome = SubprocessProbeRunner().invoke(_probe(script), timeout=0.3)
        assert time.monotonic() - start < 5
        assert outcome.invocation_failed
        assert not outcome.cancelled
        assert "timed out" in (outcome.error or "")

    def test_cancel_mid_flight(self, tmp_path: Path):
        script = _script(tmp_path, "slow", "sleep 30")
        token = CancelToken()
        threading.Timer(0.2, token.cancel).start()
        start = time.monotonic()
        outcome = SubprocessProbeRunner().invoke(_probe(script), timeout=20, cancel=token)
        assert time.monotonic() - start < 5
        assert outcome.invocation_failed
        assert outcome.cancelled

    def test_cancelled_before_start(self, tmp_path: Path):
        script = _script(tmp_path, "tool", "echo 1")
        token = CancelToken()
        token.cancel()
        outcome = SubprocessProbeRunner().invoke(_probe(script), cancel=token)
        assert outcome.cancelled
        assert outcome.executable is None


# ── Mock runner ──────────────────────────────────────────────────────


class TestMockRunner:
    def test_default_is_not_installed(self):
        mock = MockProbeRunner()
        outcome = mock.invoke(_probe("/bin/x"))
        assert outcome.invocation_failed
        assert mock.call_count == 1

    def test_scripted_output(self):
        mock = MockProbeRunner()
        mock.set_output("test-probe", "1\n")
        outcome = mock.invoke(_probe("/bin/x"))
        assert outcome.stdout == "1\n"
        assert outcome.exit_code == 0

    def test_call_log_records_rendered_args(self):
        mock = MockProbeRunner()
        mock.invoke(_probe("/bin/x", args=("{host}",)), variables={"host": "h"})
        assert mock.call_log[0].args == ["h"]
        assert mock.call_log[0].executable == "/bin/x"
        assert mock.calls_for("test-probe") == 1

    def test_set_missing(self):
        mock = MockProbeRunner(default_outcome=ProbeOutcome.completed(exit_code=0, stdout="1"))
        mock.set_missing("test-probe")
        assert mock.invoke(_probe("/bin/x")).invocation_failed

    def test_set_error_raises(self):
        mock = MockProbeRunner()
        mock.set_error("test-probe", RuntimeError("kaboom"))
        with pytest.raises(RuntimeError):
            mock.invoke(_probe("/bin/x"))

    def test_delay_honours_cancel(self):
        mock = MockProbeRunner(delay=10)
        token = CancelToken()
        threading.Timer(0.05, token.cancel).start()
        outcome = mock.invoke(_probe("/bin/x"), cancel=token)
        assert outcome.cancelled

    def test_reset(self):
        mock = MockProbeRunner()
        mock.set_output("test-probe", "1")
        mock.invoke(_probe("/bin/x"))
        mock.reset()
        assert mock.call_count == 0
        assert mock.invoke(_probe("/bin/x")).invocation_failed
