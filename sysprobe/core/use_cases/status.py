"""
Status use case — the last saved report, without probing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sysprobe.core.config.loader import ConfigError, load_config
from sysprobe.core.models.report import DetectionReport
from sysprobe.core.persistence.history import HistoryWriter
from sysprobe.core.persistence.state_file import LatestReportFile


@dataclass
class StatusResult:
    report: DetectionReport | None = None
    state_path: Path | None = None
    history_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "state_path": str(self.state_path) if self.state_path else None,
            "history_count": self.history_count,
            "report": self.report.to_dict() if self.report else None,
        }


def get_status(config_path: Path | None = None) -> StatusResult:
    """Load the latest report snapshot and history size."""
    result = StatusResult()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.state_path = config.state_path
    result.report = LatestReportFile(config.state_path).load()
    result.history_count = HistoryWriter(config.history_path).entry_count()
    return result
