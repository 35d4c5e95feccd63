"""FastAPI application bootstrap."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .dependencies import get_todo_service
from .routes import (
    register_admin_routes,
    register_auth_routes,
    register_config_routes,
    register_health_routes,
    register_todo_routes,
)

__all__ = ["app", "create_app", "get_todo_service"]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="packup API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_health_routes(app)
    register_auth_routes(app)
    register_config_routes(app)
    register_todo_routes(app)
    register_admin_routes(app)

    return app


app = create_app()
