"""HTTP adapter over VettingService."""

from backend_vetting.api_server.server import create_app

__all__ = ["create_app"]
