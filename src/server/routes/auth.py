"""Session endpoints (current actor, logout)."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from fastapi import Depends, FastAPI, Request, Response

from src.users import User

from ..dependencies import config, get_current_user, get_user_repository, serialize_user
from ..schemas import UserResponse

logger = logging.getLogger(__name__)


def register_auth_routes(app: FastAPI) -> None:
    """Register session endpoints."""

    @app.get("/api/auth/me", response_model=UserResponse)
    async def me(user: User = Depends(get_current_user)) -> UserResponse:
        """Return the user bound to the session cookie."""
        return serialize_user(user)

    @app.post("/api/auth/logout")
    async def logout(request: Request, response: Response) -> Dict[str, bool]:
        """Delete the session and clear the cookie."""
        cookie_name = config.session.cookie_name
        token = request.cookies.get(cookie_name)
        if token:
            await asyncio.to_thread(get_user_repository().delete_session, token)
            logger.info("Session closed")
        response.delete_cookie(
            cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=config.session.secure,
        )
        return {"success": True}
