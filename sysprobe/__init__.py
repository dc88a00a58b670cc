"""sysprobe — resolve OS capability state from conflicting external probes."""

__version__ = "0.1.0"
