"""
History ledger — append-only record of published reports.

Every completed refresh writes one line to an NDJSON (newline-delimited
JSON) file: when it ran, what each capability resolved to, and which
values came from a default policy rather than a probe.

The ledger is append-only and best-effort: a failed write is logged and
never interrupts detection.
"""

from __future__ import annotations

import getpass
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from sysprobe.core.models.report import DetectionReport

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DIR = ".sysprobe"
DEFAULT_HISTORY_FILE = "history.ndjson"

# How many records "recent" means when the caller does not say
DEFAULT_RECENT = 50


@runtime_checkable
class ReportSink(Protocol):
    """Anything that wants to be told about published reports."""

    def record(self, report: DetectionReport) -> None: ...


def default_notes() -> str:
    """Note attached to records when the caller gives none."""
    try:
        user = getpass.getuser()
    except Exception:
        user = "unknown"
    return f"Check performed for user: {user}"


class HistoryRecord(BaseModel):
    """A single history line."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    report_id: str = ""
    duration_ms: int = 0

    # Capability value → resolved boolean
    capabilities: dict[str, bool] = Field(default_factory=dict)
    defaulted: list[str] = Field(default_factory=list)

    notes: str = ""

    @classmethod
    def from_report(cls, report: DetectionReport, notes: str = "") -> HistoryRecord:
        return cls(
            timestamp=report.generated_at,
            report_id=report.report_id,
            duration_ms=report.duration_ms,
            capabilities={cap.value: res.value for cap, res in report.results.items()},
            defaulted=[cap.value for cap in report.defaulted],
            notes=notes,
        )


class HistoryWriter:
    """Append-only history ledger.

    Each call to record() appends one JSON line. The file and its parent
    directory are created on first write.
    """

    def __init__(
        self,
        path: Path | None = None,
        project_root: Path | None = None,
        notes: str | None = None,
    ):
        if path is not None:
            self._path = path
        elif project_root is not None:
            self._path = project_root / DEFAULT_HISTORY_DIR / DEFAULT_HISTORY_FILE
        else:
            self._path = Path(DEFAULT_HISTORY_DIR) / DEFAULT_HISTORY_FILE
        self._notes = notes if notes is not None else default_notes()

    @property
    def path(self) -> Path:
        return self._path

    def record(self, report: DetectionReport) -> None:
        """Append a report to the ledger. Cancelled reports are skipped."""
        if report.cancelled:
            logger.debug("Not recording cancelled report %s", report.report_id)
            return
        self.write(HistoryRecord.from_report(report, notes=self._notes))

    def write(self, entry: HistoryRecord) -> None:
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("History entry written: %s", entry.report_id)
        except OSError as e:
            logger.error("Failed to write history entry to %s: %s", self._path, e)

    def read_all(self) -> list[HistoryRecord]:
        """Read every record, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(HistoryRecord.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt history entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read history ledger: %s", e)

        return entries

    def read_recent(self, n: int = DEFAULT_RECENT) -> list[HistoryRecord]:
        """The most recent ``n`` records, oldest first."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without parsing them."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
