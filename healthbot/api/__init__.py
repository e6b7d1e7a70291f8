"""HTTP trigger endpoints for HealthBot."""

from .routes import create_app, is_authorized

__all__ = ["create_app", "is_authorized"]
