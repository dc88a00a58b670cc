"""
Config check use case — validate sysprobe.yml and report issues.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from pathlib import Path

from sysprobe.core.config.loader import ConfigError, SysprobeConfig, find_config_file, load_config
from sysprobe.core.models.capability import Capability


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: SysprobeConfig | None = None
    config_path: Path | None = None
    probe_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "probe_count": self.probe_count,
        }


def _placeholders(template: str) -> list[str]:
    try:
        return [name for _, name, _, _ in string.Formatter().parse(template) if name]
    except ValueError:
        return []


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate configuration and the catalog it produces.

    Args:
        config_path: Optional explicit path to sysprobe.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            result.warnings.append("No sysprobe.yml found; built-in defaults apply.")
    result.config_path = config_path

    try:
        config = load_config(config_path, search=False)
        result.config = config
        catalog = config.build_catalog()
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.probe_count = sum(len(spec.probes) for spec in catalog.values())

    # Semantic checks
    referenced = {
        name
        for spec in catalog.values()
        for probe in spec.probes
        for arg in probe.args
        for name in _placeholders(arg)
    }
    unused = sorted(set(config.variables) - referenced)
    if unused:
        result.warnings.append(f"Variables not referenced by any probe: {', '.join(unused)}")

    for cap in Capability:
        spec = catalog.get(cap)
        if spec is not None and len(spec.probes) == 1:
            result.warnings.append(
                f"{cap.label} has a single probe ({spec.probes[0].name}); no fallback remains."
            )

    result.valid = len(result.errors) == 0
    return result
