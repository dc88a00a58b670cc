"""
Latest-report snapshot — atomic read/write of the current report.

The last published report is stored as JSON in .sysprobe/current.json so
``sysprobe status`` can answer without probing. Writes are atomic (write
to a temp file, then rename).
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from sysprobe.core.models.report import DetectionReport

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".sysprobe"
DEFAULT_STATE_FILE = "current.json"


def default_state_path(project_root: Path) -> Path:
    return project_root / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


class LatestReportFile:
    """Report sink that keeps a snapshot of the newest report."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def record(self, report: DetectionReport) -> None:
        """Save a report (atomic write). Cancelled reports are skipped.

        Raises:
            OSError: If the snapshot cannot be written.
        """
        if report.cancelled:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(report.to_dict(), indent=2, ensure_ascii=False) + "\n"

        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".report_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                tmp.replace(self._path)
                logger.debug("Report %s saved to %s", report.report_id, self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except Exception as e:
            logger.error("Failed to save report to %s: %s", self._path, e)
            raise

    def load(self) -> DetectionReport | None:
        """Load the saved report, or None if missing or unreadable."""
        if not self._path.is_file():
            logger.info("No saved report at %s", self._path)
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return DetectionReport.model_validate(data)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt report file %s: %s", self._path, e)
            return None
        except (OSError, ValidationError) as e:
            logger.warning("Cannot load report from %s: %s", self._path, e)
            return None
