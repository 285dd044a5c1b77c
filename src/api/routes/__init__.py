"""Routes Package - API endpoint definitions.

- health: public liveness endpoints
- auth: account sign-up, login, verification and password reset
- tasks: per-user task CRUD

Note: Import routers directly from individual modules to avoid circular imports.
Example: from src.api.routes.tasks import router as tasks_router
"""

__all__ = ["auth", "health", "tasks"]
