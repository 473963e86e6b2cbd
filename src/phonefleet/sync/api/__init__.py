"""API layer - FastAPI router for the sync endpoints."""

from .router import router

__all__ = ["router"]
