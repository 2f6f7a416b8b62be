"""Allow running as ``python -m pagepilot``."""

from pagepilot.cli.main import app

app()
