"""Command-line interface for the multicloud gateway."""
