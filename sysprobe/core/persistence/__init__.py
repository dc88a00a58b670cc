"""Persistence collaborators — history ledger and latest-report snapshot."""

from sysprobe.core.persistence.history import HistoryRecord, HistoryWriter, ReportSink
from sysprobe.core.persistence.state_file import LatestReportFile

__all__ = ["HistoryRecord", "HistoryWriter", "LatestReportFile", "ReportSink"]
