"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import NoReturn

from fastapi import Depends, HTTPException, Request

from src.packup.config import Config
from src.packup.logger import setup_logger
from src.todo import (
    Actor,
    ForbiddenError,
    NotFoundError,
    TodoError,
    TodoItem,
    TodoRepository,
    TodoService,
    ValidationError,
)
from src.users import User, UserRepository

from .schemas import TodoResponse, UserResponse

logger = logging.getLogger(__name__)

config = Config.from_yaml()
setup_logger(log_level=config.log_level, log_file=config.log_file)


@lru_cache(maxsize=1)
def get_todo_service() -> TodoService:
    """Singleton TodoService (PACKUP_DB_PATH is read on first use)."""
    db_path = os.getenv("PACKUP_DB_PATH") or config.db_path
    repository = TodoRepository(db_path=Path(db_path) if db_path else None)
    return TodoService(repository, UserRepository(db_path=repository.db_path))


def get_user_repository() -> UserRepository:
    """UserRepository sharing the todo database."""
    return get_todo_service().users


def get_current_user(request: Request) -> User:
    """Resolve the session cookie to a user (401 when absent or expired)."""
    token = request.cookies.get(config.session.cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="unauthorized")
    user = get_user_repository().get_user_by_session(token)
    if user is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return user


def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(user_id=user.id, role=user.role)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="forbidden: admin access required")
    return actor


def raise_http_error(exc: TodoError) -> NoReturn:
    """Map the domain error taxonomy onto HTTP status codes."""
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    logger.error("Unmapped todo error: %s", exc)
    raise HTTPException(status_code=500, detail=str(exc)) from exc


def serialize_todo(item: TodoItem) -> TodoResponse:
    """Convert domain TodoItem to API response."""
    return TodoResponse(
        id=item.id,
        text=item.text,
        status=item.status,
        created=item.created,
        position=item.position,
        is_default_task=item.is_default_task,
        shared_with_admin=item.shared_with_admin,
        hidden_from_user=item.hidden_from_user,
        created_by_user_id=item.created_by_user_id,
        user_id=item.user_id,
    )


def serialize_user(user: User) -> UserResponse:
    """Convert User dataclass to API response."""
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        role=user.role,
        created_at=user.created_at,
    )
