"""``python -m gateflow`` entry point."""

from gateflow.cli.app import app

app()
