"""Command-line interface for pagepilot."""
