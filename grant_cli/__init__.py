"""Command-line entry points for grant."""
