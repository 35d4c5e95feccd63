"""Route registration helpers."""

from .admin import register_admin_routes
from .auth import register_auth_routes
from .config import register_config_routes
from .health import register_health_routes
from .todo import register_todo_routes

__all__ = [
    "register_admin_routes",
    "register_auth_routes",
    "register_config_routes",
    "register_health_routes",
    "register_todo_routes",
]
