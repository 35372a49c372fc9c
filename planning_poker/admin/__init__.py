"""Admin endpoints."""

from planning_poker.admin.routes import router

__all__ = ["router"]
