"""Pydantic schemas for the FastAPI server."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.todo import TodoStatus
from src.users import UserRole


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str


class SuccessResponse(BaseModel):
    """Generic success flag for delete/reorder endpoints."""

    success: bool = True


class TodoResponse(BaseModel):
    """Serialized todo item, projected for the requesting scope."""

    id: str
    text: str
    status: TodoStatus
    created: str
    position: Optional[int] = None
    is_default_task: bool
    shared_with_admin: bool
    hidden_from_user: bool
    created_by_user_id: Optional[str] = None
    user_id: Optional[str] = None

    class Config:
        use_enum_values = True


class TodoListResponse(BaseModel):
    """Ordered todo list."""

    todos: List[TodoResponse]


class TodoCreateRequest(BaseModel):
    """Request body for creating a personal todo."""

    text: str = Field(..., description="Todo text (1-200 characters)")
    shared_with_admin: Optional[bool] = Field(
        default=None,
        description="Whether admins can see this todo (defaults to true)",
    )


class TodoUpdateRequest(BaseModel):
    """Partial update. Only supplied fields change; permissions are checked per field."""

    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None
    status: Optional[str] = None
    shared_with_admin: Optional[bool] = None
    hidden_from_user: Optional[bool] = None


class ReorderRequest(BaseModel):
    """Full ordered list of ids for one scope."""

    ids: List[str] = Field(..., description="Every visible todo id, in the new order")


class DefaultTaskCreateRequest(BaseModel):
    """Request body for creating a default task."""

    text: str = Field(..., description="Template text shown to every user")


class UserTodoCreateRequest(BaseModel):
    """Request body for an admin creating a todo inside a user's list."""

    text: str
    hidden_from_user: bool = Field(default=False)


class UserResponse(BaseModel):
    """Serialized user."""

    id: str
    email: str
    name: str
    avatar_url: str
    role: UserRole
    created_at: str

    class Config:
        use_enum_values = True


class UserListResponse(BaseModel):
    """List of users."""

    users: List[UserResponse]


class RuntimeConfigResponse(BaseModel):
    """Client runtime configuration."""

    chatbot_enabled: bool
    chatbot_api_url: str
    chatbot_api_token: str
