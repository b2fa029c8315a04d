"""Multi-cloud object storage gateway."""

__version__ = "0.1.0"
