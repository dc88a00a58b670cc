"""Core detection engine: models, interpreters, resolution, persistence."""
