"""Command-line helpers for kinesim."""
