"""HTTP client for the packup API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config_cache import ChatbotSettings, RuntimeConfigCache

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class PackupClient:
    """
    packup APIクライアント

    セッションクッキーは requests.Session が保持する。
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        session_token: Optional[str] = None,
        cookie_name: str = "session_token",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if session_token:
            self.session.cookies.set(cookie_name, session_token)
        self.config_cache: Optional[RuntimeConfigCache] = None

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"API request failed: {method} {path}: {e}")
            raise
        if not response.ok:
            raise ApiError(response.status_code, response.text or response.reason)
        if not response.content:
            return None
        return response.json()

    # --- todos -----------------------------------------------------------

    def list_todos(self, exclude_admin_todos: bool = False) -> List[Dict[str, Any]]:
        params = {"exclude_admin_todos": "true"} if exclude_admin_todos else None
        return self._request("GET", "/todos", params=params)["todos"]

    def get_todo(self, todo_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/todos/{todo_id}")

    def create_todo(self, text: str, shared_with_admin: Optional[bool] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": text}
        if shared_with_admin is not None:
            payload["shared_with_admin"] = shared_with_admin
        return self._request("POST", "/todos", json=payload)

    def update_todo(self, todo_id: str, **updates: Any) -> Dict[str, Any]:
        """text / status / shared_with_admin / hidden_from_user の部分更新"""
        return self._request("PUT", f"/todos/{todo_id}", json=updates)

    def delete_todo(self, todo_id: str) -> None:
        self._request("DELETE", f"/todos/{todo_id}")

    def reorder_todos(self, ids: List[str]) -> None:
        self._request("PUT", "/todos/reorder", json={"ids": ids})

    # --- auth / config ---------------------------------------------------

    def get_me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    def logout(self) -> None:
        self._request("POST", "/auth/logout")
        if self.config_cache is not None:
            self.config_cache.clear_cache()

    def get_config(self) -> Dict[str, Any]:
        return self._request("GET", "/config")

    def attach_config_cache(self, cache: Optional[RuntimeConfigCache] = None) -> RuntimeConfigCache:
        """/api/config を取得元とするキャッシュを接続する"""
        self.config_cache = cache or RuntimeConfigCache(self.get_config)
        return self.config_cache

    def chatbot_settings(self) -> ChatbotSettings:
        cache = self.config_cache or self.attach_config_cache()
        return cache.get_config()

    # --- admin -----------------------------------------------------------

    def list_users(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/admin/users")["users"]

    def list_default_tasks(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/admin/todos")["todos"]

    def create_default_task(self, text: str) -> Dict[str, Any]:
        return self._request("POST", "/admin/todos", json={"text": text})

    def update_default_task(self, todo_id: str, text: str) -> Dict[str, Any]:
        return self._request("PUT", f"/admin/todos/{todo_id}", json={"text": text})

    def delete_default_task(self, todo_id: str) -> None:
        self._request("DELETE", f"/admin/todos/{todo_id}")

    def list_user_todos(self, user_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/admin/users/{user_id}/todos")["todos"]

    def create_user_todo(
        self, user_id: str, text: str, hidden_from_user: bool = False
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/admin/users/{user_id}/todos",
            json={"text": text, "hidden_from_user": hidden_from_user},
        )

    def update_user_todo(self, user_id: str, todo_id: str, **updates: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/admin/users/{user_id}/todos/{todo_id}", json=updates)

    def delete_user_todo(self, user_id: str, todo_id: str) -> None:
        self._request("DELETE", f"/admin/users/{user_id}/todos/{todo_id}")
