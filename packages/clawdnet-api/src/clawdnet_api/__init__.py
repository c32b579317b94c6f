"""ClawdNet HTTP API."""
from .dependencies import ServiceContainer
from .main import create_app

__all__ = ["ServiceContainer", "create_app"]
