"""Todo endpoints for the caller's own list."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException

from src.todo import Actor, TodoError

from ..dependencies import get_current_actor, get_todo_service, raise_http_error, serialize_todo
from ..schemas import (
    ReorderRequest,
    SuccessResponse,
    TodoCreateRequest,
    TodoListResponse,
    TodoResponse,
    TodoUpdateRequest,
)

logger = logging.getLogger(__name__)


def register_todo_routes(app: FastAPI) -> None:
    """Register todo CRUD and reorder endpoints."""

    @app.get("/api/todos", response_model=TodoListResponse)
    async def list_todos(
        exclude_admin_todos: bool = False,
        actor: Actor = Depends(get_current_actor),
    ) -> TodoListResponse:
        """List the caller's effective todos in position order."""
        service = get_todo_service()
        try:
            todos = await asyncio.to_thread(service.list_todos, actor, exclude_admin_todos)
            return TodoListResponse(todos=[serialize_todo(todo) for todo in todos])
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to list todos: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list todos") from exc

    @app.post("/api/todos", response_model=TodoResponse, status_code=201)
    async def create_todo(
        request: TodoCreateRequest,
        actor: Actor = Depends(get_current_actor),
    ) -> TodoResponse:
        """Create a personal todo at the end of the caller's list."""
        service = get_todo_service()
        shared = True if request.shared_with_admin is None else request.shared_with_admin
        try:
            todo = await asyncio.to_thread(service.create_todo, actor, request.text, shared)
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to create todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create todo") from exc

    @app.put("/api/todos/reorder", response_model=SuccessResponse)
    async def reorder_todos(
        request: ReorderRequest,
        actor: Actor = Depends(get_current_actor),
    ) -> SuccessResponse:
        """Replace the order of the caller's list (all ids, all-or-nothing)."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.reorder_todos, actor, request.ids)
            return SuccessResponse(success=True)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to reorder todos: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reorder todos") from exc

    @app.get("/api/todos/{todo_id}", response_model=TodoResponse)
    async def get_todo(todo_id: str, actor: Actor = Depends(get_current_actor)) -> TodoResponse:
        """Fetch one todo from the caller's list."""
        service = get_todo_service()
        try:
            todo = await asyncio.to_thread(service.get_todo, actor, todo_id)
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to get todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to get todo") from exc

    @app.api_route("/api/todos/{todo_id}", methods=["PUT", "PATCH"], response_model=TodoResponse)
    async def update_todo(
        todo_id: str,
        request: TodoUpdateRequest,
        actor: Actor = Depends(get_current_actor),
    ) -> TodoResponse:
        """Partially update a todo (text/status/shared_with_admin, per capability)."""
        service = get_todo_service()
        try:
            patch = request.model_dump(exclude_unset=True)
            todo = await asyncio.to_thread(service.update_todo, actor, todo_id, patch)
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to update todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update todo") from exc

    @app.delete("/api/todos/{todo_id}")
    async def delete_todo(
        todo_id: str, actor: Actor = Depends(get_current_actor)
    ) -> Dict[str, bool]:
        """Delete one of the caller's todos."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.delete_todo, actor, todo_id)
            return {"success": True}
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to delete todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete todo") from exc
