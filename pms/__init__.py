"""PMS collaboration backend: task comment threads, role resolution, notifications."""

__version__ = "0.4.0"
