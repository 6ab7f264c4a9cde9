"""gateflow command-line interface (typer)."""
