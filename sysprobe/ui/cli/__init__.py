"""CLI sub-command groups registered by sysprobe.main."""
