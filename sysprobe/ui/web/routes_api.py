"""
API routes — JSON endpoints for capability state.

All endpoints return JSON. Grouped under /api/ prefix.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request

from sysprobe.core.engine.detection import DetectionEngine, ReportUnavailableError
from sysprobe.core.models.capability import Capability
from sysprobe.core.persistence.history import DEFAULT_RECENT, HistoryWriter
from sysprobe.core.use_cases.monitor import Monitor

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def _engine() -> DetectionEngine:
    return current_app.config["ENGINE"]


def _monitor() -> Monitor:
    return current_app.config["MONITOR"]


# ── Status ───────────────────────────────────────────────────────────


@api_bp.route("/status")
def api_status():  # type: ignore[no-untyped-def]
    """Current report: one boolean per capability."""
    report = _engine().report
    if report is None:
        return jsonify({"error": "No detection report yet; POST /api/refresh"}), 503

    return jsonify({
        "report_id": report.report_id,
        "generated_at": report.generated_at,
        "duration_ms": report.duration_ms,
        "capabilities": {cap.value: res.value for cap, res in report.results.items()},
        "defaulted": [cap.value for cap in report.defaulted],
        "monitor": {
            "running": _monitor().running,
            "interval": _monitor().interval,
            "cycles": _monitor().cycles,
        },
    })


# ── Refresh ──────────────────────────────────────────────────────────


@api_bp.route("/refresh", methods=["POST"])
def api_refresh():  # type: ignore[no-untyped-def]
    """Run a detection cycle now and record it."""
    report = _monitor().run_once()
    if report.cancelled:
        return jsonify({"error": "Refresh cancelled", "report_id": report.report_id}), 409
    return jsonify(report.to_dict())


# ── Capabilities ─────────────────────────────────────────────────────


@api_bp.route("/capabilities/<name>")
def api_capability(name: str):  # type: ignore[no-untyped-def]
    """Value and probe trail for one capability."""
    try:
        cap = Capability.parse(name)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404

    try:
        result = _engine().result(cap)
    except ReportUnavailableError as e:
        return jsonify({"error": str(e)}), 503
    except KeyError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "capability": cap.value,
        "label": cap.label,
        "value": result.value,
        "source": result.source,
        "defaulted": result.defaulted,
        "policy": result.policy.value,
        "diagnostics": [entry.model_dump(mode="json") for entry in result.trail],
    })


# ── History ──────────────────────────────────────────────────────────


@api_bp.route("/history")
def api_history():  # type: ignore[no-untyped-def]
    """Recent history records, oldest first."""
    limit = request.args.get("limit", DEFAULT_RECENT, type=int)
    writer = HistoryWriter(Path(current_app.config["HISTORY_PATH"]))
    records = writer.read_recent(limit)
    return jsonify({
        "total": writer.entry_count(),
        "records": [r.model_dump(mode="json") for r in records],
    })
