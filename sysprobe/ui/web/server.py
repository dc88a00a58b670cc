"""
Web server — Flask app factory.

Creates and configures the Flask application serving the JSON API.
The app owns one DetectionEngine; a background Monitor keeps its report
fresh when an interval is given.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from sysprobe.adapters.base import ProbeRunner
from sysprobe.core.config.loader import load_config
from sysprobe.core.use_cases.monitor import Monitor
from sysprobe.core.use_cases.refresh import build_engine, build_sinks

logger = logging.getLogger(__name__)


def create_app(
    config_path: Path | None = None,
    mock_mode: bool = False,
    monitor_interval: float | None = None,
    runner: ProbeRunner | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to sysprobe.yml (default: auto-detect).
        mock_mode: Whether to use the mock runner.
        monitor_interval: Seconds between background refreshes; None
            leaves refreshing to POST /api/refresh.
        runner: Explicit probe runner (overrides ``mock_mode``).

    Returns:
        Configured Flask application.

    Raises:
        ConfigError: If the configuration is invalid.
    """
    config = load_config(config_path)
    engine = build_engine(config, runner=runner, mock=mock_mode)
    sinks = build_sinks(config)
    monitor = Monitor(engine, sinks, interval=monitor_interval or 30.0)

    app = Flask(__name__)

    app.config["CONFIG_PATH"] = str(config.source) if config.source else None
    app.config["MOCK_MODE"] = mock_mode
    app.config["ENGINE"] = engine
    app.config["MONITOR"] = monitor
    app.config["HISTORY_PATH"] = str(config.history_path)

    from sysprobe.ui.web.routes_api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    if monitor_interval:
        monitor.start()

    logger.info("Web app created (config=%s, runner=%s)", config.source, engine.runner.name)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting web API on %s:%d", host, port)
    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False)
    finally:
        app.config["MONITOR"].stop()
