"""API layer for assignments and device actions.

Contains:
- FastAPI routers with endpoints
- Pydantic schemas for request/response validation
"""

from .router import devices_router, router

__all__ = ["router", "devices_router"]
