"""Admin endpoints: default-task catalog and per-user lists."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException

from src.todo import Actor, TodoError

from ..dependencies import (
    get_todo_service,
    raise_http_error,
    require_admin,
    serialize_todo,
    serialize_user,
)
from ..schemas import (
    DefaultTaskCreateRequest,
    ReorderRequest,
    SuccessResponse,
    TodoListResponse,
    TodoResponse,
    TodoUpdateRequest,
    UserListResponse,
    UserTodoCreateRequest,
)

logger = logging.getLogger(__name__)


def register_admin_routes(app: FastAPI) -> None:
    """Register admin-only endpoints."""

    @app.get("/api/admin/users", response_model=UserListResponse)
    async def list_users(actor: Actor = Depends(require_admin)) -> UserListResponse:
        """List all non-admin users, newest first."""
        service = get_todo_service()
        try:
            users = await asyncio.to_thread(service.list_users, actor)
            return UserListResponse(users=[serialize_user(user) for user in users])
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to list users: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list users") from exc

    # --- default tasks ---------------------------------------------------

    @app.get("/api/admin/todos", response_model=TodoListResponse)
    async def list_default_tasks(actor: Actor = Depends(require_admin)) -> TodoListResponse:
        """List the default-task catalog."""
        service = get_todo_service()
        try:
            todos = await asyncio.to_thread(service.list_default_tasks, actor)
            return TodoListResponse(todos=[serialize_todo(todo) for todo in todos])
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to list default tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list default tasks") from exc

    @app.post("/api/admin/todos", response_model=TodoResponse, status_code=201)
    async def create_default_task(
        request: DefaultTaskCreateRequest, actor: Actor = Depends(require_admin)
    ) -> TodoResponse:
        """Create a default task shown to every user."""
        service = get_todo_service()
        try:
            todo = await asyncio.to_thread(service.create_default_task, actor, request.text)
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to create default task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create default task") from exc

    @app.put("/api/admin/todos/reorder", response_model=SuccessResponse)
    async def reorder_default_tasks(
        request: ReorderRequest, actor: Actor = Depends(require_admin)
    ) -> SuccessResponse:
        """Reorder the default-task catalog."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.reorder_default_tasks, actor, request.ids)
            return SuccessResponse(success=True)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to reorder default tasks: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reorder default tasks") from exc

    @app.put("/api/admin/todos/{todo_id}", response_model=TodoResponse)
    async def update_default_task(
        todo_id: str, request: TodoUpdateRequest, actor: Actor = Depends(require_admin)
    ) -> TodoResponse:
        """Update the text of a default task; every user sees it immediately."""
        service = get_todo_service()
        try:
            patch = request.model_dump(exclude_unset=True)
            todo = await asyncio.to_thread(service.update_default_task, actor, todo_id, patch)
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to update default task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update default task") from exc

    @app.delete("/api/admin/todos/{todo_id}")
    async def delete_default_task(
        todo_id: str, actor: Actor = Depends(require_admin)
    ) -> Dict[str, bool]:
        """Delete a default task together with every per-user override."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.delete_default_task, actor, todo_id)
            return {"success": True}
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to delete default task: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete default task") from exc

    # --- a user's list ---------------------------------------------------

    @app.get("/api/admin/users/{user_id}/todos", response_model=TodoListResponse)
    async def list_user_todos(
        user_id: str, actor: Actor = Depends(require_admin)
    ) -> TodoListResponse:
        """List a user's effective todos as seen by the admin."""
        service = get_todo_service()
        try:
            todos = await asyncio.to_thread(service.list_user_todos, actor, user_id)
            return TodoListResponse(todos=[serialize_todo(todo) for todo in todos])
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to list user todos: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to list user todos") from exc

    @app.post("/api/admin/users/{user_id}/todos", response_model=TodoResponse, status_code=201)
    async def create_user_todo(
        user_id: str, request: UserTodoCreateRequest, actor: Actor = Depends(require_admin)
    ) -> TodoResponse:
        """Create a todo directly inside a user's list."""
        service = get_todo_service()
        try:
            todo = await asyncio.to_thread(
                service.create_user_todo,
                actor,
                user_id,
                request.text,
                request.hidden_from_user,
            )
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to create user todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create user todo") from exc

    @app.put("/api/admin/users/{user_id}/todos/reorder", response_model=SuccessResponse)
    async def reorder_user_todos(
        user_id: str, request: ReorderRequest, actor: Actor = Depends(require_admin)
    ) -> SuccessResponse:
        """Reorder the admin's view of a user's list (independent of the user's order)."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.reorder_user_todos, actor, user_id, request.ids)
            return SuccessResponse(success=True)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to reorder user todos: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to reorder user todos") from exc

    @app.put("/api/admin/users/{user_id}/todos/{todo_id}", response_model=TodoResponse)
    async def update_user_todo(
        user_id: str,
        todo_id: str,
        request: TodoUpdateRequest,
        actor: Actor = Depends(require_admin),
    ) -> TodoResponse:
        """Update status/text/hidden_from_user of a todo in a user's list."""
        service = get_todo_service()
        try:
            patch = request.model_dump(exclude_unset=True)
            todo = await asyncio.to_thread(
                service.update_user_todo, actor, user_id, todo_id, patch
            )
            return serialize_todo(todo)
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to update user todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to update user todo") from exc

    @app.delete("/api/admin/users/{user_id}/todos/{todo_id}")
    async def delete_user_todo(
        user_id: str, todo_id: str, actor: Actor = Depends(require_admin)
    ) -> Dict[str, bool]:
        """Delete an admin-created todo from a user's list."""
        service = get_todo_service()
        try:
            await asyncio.to_thread(service.delete_user_todo, actor, user_id, todo_id)
            return {"success": True}
        except TodoError as exc:
            raise_http_error(exc)
        except Exception as exc:
            logger.exception("Failed to delete user todo: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete user todo") from exc
