"""
Probe models — the raw-outcome contract between runners and interpreters.

A Probe is a declaration: where the external program may live, how to
invoke it, and which interpreter reads its output. A ProbeOutcome is what
came back. Interpreters turn outcomes into a tri-state Verdict.
"""

from __future__ import annotations

import enum
import glob
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Verdict(str, enum.Enum):
    """Tri-state result of interpreting one probe outcome."""

    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    @property
    def is_definite(self) -> bool:
        return self is not Verdict.UNKNOWN

    def as_bool(self) -> bool | None:
        """True/False for definite verdicts, None for Unknown."""
        if self is Verdict.UNKNOWN:
            return None
        return self is Verdict.TRUE

    @classmethod
    def of(cls, value: bool | None) -> Verdict:
        if value is None:
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE


class ProbeOutcome(BaseModel):
    """Raw outcome of one probe invocation.

    Runners NEVER raise: a missing binary, spawn error, timeout or
    cancellation is captured here with ``invocation_failed=True`` and
    empty output.
    """

    model_config = ConfigDict(frozen=True)

    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    invocation_failed: bool = False
    cancelled: bool = False

    executable: str | None = None
    duration_ms: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """The program ran and exited 0."""
        return not self.invocation_failed and self.exit_code == 0

    @classmethod
    def completed(
        cls,
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
        **kwargs: Any,
    ) -> ProbeOutcome:
        """Outcome of a program that ran to completion."""
        return cls(exit_code=exit_code, stdout=stdout, stderr=stderr, **kwargs)

    @classmethod
    def failure(cls, error: str, cancelled: bool = False, **kwargs: Any) -> ProbeOutcome:
        """Outcome of an invocation that could not complete."""
        return cls(
            invocation_failed=True,
            cancelled=cancelled,
            error=error,
            **kwargs,
        )


class Probe(BaseModel):
    """One external-program check for a capability.

    ``candidates`` are tried in declared order; the first that exists is
    invoked. Entries may be absolute paths or bare program names looked
    up on PATH. Each ``args`` entry is a ``str.format`` template rendered
    against the engine variables at invocation time.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    candidates: tuple[str, ...]
    args: tuple[str, ...] = ()
    interpreter: str
    expand_globs: bool = False
    description: str = ""

    @field_validator("candidates")
    @classmethod
    def _require_candidate(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("probe needs at least one candidate executable")
        return value

    @field_validator("interpreter")
    @classmethod
    def _known_interpreter(cls, value: str) -> str:
        from sysprobe.core.interpreters import INTERPRETERS

        if value not in INTERPRETERS:
            raise ValueError(
                f"unknown interpreter {value!r}; known: {sorted(INTERPRETERS)}"
            )
        return value

    def render_args(self, variables: dict[str, str] | None = None) -> list[str]:
        """Render the argument templates into a concrete argv tail.

        Glob patterns are expanded when ``expand_globs`` is set; a pattern
        with no matches is passed through unchanged, as a shell would.
        """
        variables = variables or {}
        rendered: list[str] = []
        for template in self.args:
            try:
                arg = template.format(**variables)
            except (KeyError, IndexError, ValueError):
                arg = template
            if self.expand_globs and glob.has_magic(arg):
                matches = sorted(glob.glob(arg))
                rendered.extend(matches or [arg])
            else:
                rendered.append(arg)
        return rendered

    def interpret(self, outcome: ProbeOutcome) -> Verdict:
        """Apply this probe's interpreter to an outcome."""
        from sysprobe.core.interpreters import get_interpreter

        return get_interpreter(self.interpreter)(outcome)


class ProbeOverride(BaseModel):
    """Per-probe configuration override (candidates and/or args)."""

    candidates: list[str] | None = None
    args: list[str] | None = None
    description: str | None = None

    def apply(self, probe: Probe) -> Probe:
        update: dict[str, Any] = {}
        if self.candidates is not None:
            update["candidates"] = tuple(self.candidates)
        if self.args is not None:
            update["args"] = tuple(self.args)
        if self.description is not None:
            update["description"] = self.description
        if not update:
            return probe
        return Probe.model_validate({**probe.model_dump(), **update})

