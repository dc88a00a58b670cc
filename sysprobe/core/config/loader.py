"""
Configuration loader — reads sysprobe.yml into typed settings.

Reads YAML, validates against Pydantic schemas, and hands back a
SysprobeConfig. A missing file is not an error: every key has a built-in
default, so the detector works out of the box.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sysprobe.core.catalog import CatalogError, build_catalog
from sysprobe.core.engine.detection import EngineSettings
from sysprobe.core.models.capability import Capability, CapabilitySpec, UnknownPolicy
from sysprobe.core.models.probe import ProbeOverride

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "sysprobe.yml"

DEFAULT_HISTORY_FILE = ".sysprobe/history.ndjson"
DEFAULT_STATE_FILE = ".sysprobe/current.json"


class ConfigError(Exception):
    """Raised when sysprobe configuration is invalid."""


class EngineSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    probe_timeout: float = Field(default=5.0, gt=0)
    short_circuit: bool = True
    probe_workers: int = Field(default=1, ge=1)
    max_workers: int = Field(default=4, ge=1)


class SysprobeConfig(BaseModel):
    """Validated contents of sysprobe.yml."""

    model_config = ConfigDict(extra="forbid")

    engine: EngineSection = Field(default_factory=EngineSection)
    variables: dict[str, str] = Field(default_factory=dict)
    defaults: dict[Capability, UnknownPolicy] = Field(default_factory=dict)
    disabled_probes: list[str] = Field(default_factory=list)
    probes: dict[str, ProbeOverride] = Field(default_factory=dict)
    history_file: str = DEFAULT_HISTORY_FILE
    state_file: str = DEFAULT_STATE_FILE

    # Where the file was loaded from (None = built-in defaults)
    source: Path | None = Field(default=None, exclude=True)

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify_variables(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    @property
    def root(self) -> Path:
        """Directory relative paths in the config are resolved against."""
        if self.source is not None:
            return self.source.parent.resolve()
        return Path.cwd()

    @property
    def history_path(self) -> Path:
        return self._resolve(self.history_file)

    @property
    def state_path(self) -> Path:
        return self._resolve(self.state_file)

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.root / path

    def engine_settings(self) -> EngineSettings:
        """Engine settings with configured variables layered over the defaults."""
        base = EngineSettings()
        return EngineSettings(
            **self.engine.model_dump(),
            variables={**base.variables, **self.variables},
        )

    def build_catalog(self) -> dict[Capability, CapabilitySpec]:
        """The built-in catalog with this config's overrides applied.

        Raises:
            ConfigError: If the overrides leave the catalog invalid.
        """
        try:
            return build_catalog(
                policy_overrides=self.defaults,
                probe_overrides=self.probes,
                disabled_probes=self.disabled_probes,
            )
        except CatalogError as e:
            raise ConfigError(str(e)) from e


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for sysprobe.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to sysprobe.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, search: bool = True) -> SysprobeConfig:
    """Load and validate sysprobe configuration.

    Args:
        path: Explicit path to sysprobe.yml. If None, searches upward
            from cwd when ``search`` is set.
        search: Whether to look for a config file when no path is given.

    Returns:
        Validated SysprobeConfig (built-in defaults if no file is found).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file() if search else None
        if path is None:
            logger.debug("No %s found; using built-in defaults", CONFIG_FILE)
            return SysprobeConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = SysprobeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    config.source = path
    logger.info("Loaded config from %s", path)
    return config
