"""Subprocess-backed probe runner."""
