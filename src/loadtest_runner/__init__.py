"""A/B load-test comparison runner."""

__version__ = "0.1.0"
