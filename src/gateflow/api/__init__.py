"""gateflow.api — the FastAPI surface in front of the workflow runner."""

from gateflow.api.app import create_app

__all__ = ["create_app"]
