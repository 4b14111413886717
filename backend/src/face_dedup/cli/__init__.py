"""Command-line interface for face-dedup."""
