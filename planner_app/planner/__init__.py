"""Core planning domain: tasks, logs and weekly rollups."""

__version__ = "1.0.0"
