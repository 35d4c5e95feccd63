"""Todo visibility-and-ordering core shared by the server and the CLI."""

from .exceptions import ForbiddenError, NotFoundError, TodoError, ValidationError
from .models import Actor, RecordKind, Scope, TodoItem, TodoStatus
from .repository import TodoRepository, UNSET
from .service import TodoService

__all__ = [
    "Actor",
    "ForbiddenError",
    "NotFoundError",
    "RecordKind",
    "Scope",
    "TodoError",
    "TodoItem",
    "TodoRepository",
    "TodoService",
    "TodoStatus",
    "UNSET",
    "ValidationError",
]
