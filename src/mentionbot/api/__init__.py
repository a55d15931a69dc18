"""HTTP API (FastAPI)."""

from mentionbot.api.app import create_app

__all__ = ["create_app"]
