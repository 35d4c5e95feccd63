"""Runtime configuration endpoint consumed by the client config cache."""

from __future__ import annotations

from fastapi import Depends, FastAPI

from src.users import User

from ..dependencies import config, get_current_user
from ..schemas import RuntimeConfigResponse


def register_config_routes(app: FastAPI) -> None:
    """Register the runtime config endpoint."""

    @app.get("/api/config", response_model=RuntimeConfigResponse)
    async def get_runtime_config(user: User = Depends(get_current_user)) -> RuntimeConfigResponse:
        """Chatbot settings; enabled only when both URL and token are configured."""
        chatbot = config.chatbot
        return RuntimeConfigResponse(
            chatbot_enabled=chatbot.effective_enabled,
            chatbot_api_url=chatbot.api_url,
            chatbot_api_token=chatbot.api_token,
        )
