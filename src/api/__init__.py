"""API Package - FastAPI routes, middleware gates, and dependencies.

Components:
- routes: API endpoint routers (health, auth, tasks)
- middleware: request gates (logging, rate_limit, auth, errors)
- deps: FastAPI dependency injection functions

Note: Import routers directly from src.api.routes to avoid circular imports.
"""

__all__ = ["routes", "middleware", "deps", "responses"]
