"""Runtime config cache

セッション中に一度だけ /api/config を取得し、セッションストレージに保存する。
状態は {unloaded, loading, loaded} の明示的な状態機械で管理し、
取得中に呼ばれた他の呼び出し元は同じ結果を待つ（single-flight）。
ログアウト時は clear_cache() で次回の get_config() に再取得させる。
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

STORAGE_KEY = "packup_chatbot_config"


@dataclass(frozen=True)
class ChatbotSettings:
    """クライアント側のチャットボット設定"""

    enabled: bool = False
    api_url: str = ""
    api_token: str = ""

    @classmethod
    def from_response(cls, payload: Dict[str, object]) -> "ChatbotSettings":
        return cls(
            enabled=bool(payload.get("chatbot_enabled", False)),
            api_url=str(payload.get("chatbot_api_url") or ""),
            api_token=str(payload.get("chatbot_api_token") or ""),
        )


class CacheState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    """プロセス内のセッションストレージ"""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileSessionStorage:
    """JSONファイルに保存するセッションストレージ（プロセス再起動を跨ぐ）"""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Session storage unreadable, ignoring: %s", exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class RuntimeConfigCache:
    """Single-flight cache for the runtime chatbot config."""

    def __init__(
        self,
        fetch: Callable[[], Dict[str, object]],
        storage: Optional[SessionStorage] = None,
    ) -> None:
        self._fetch = fetch
        self._storage: SessionStorage = storage or MemorySessionStorage()
        self._lock = threading.Lock()
        self._state = CacheState.UNLOADED
        self._value: Optional[ChatbotSettings] = None
        self._loaded_event: Optional[threading.Event] = None
        self._generation = 0

    @property
    def state(self) -> CacheState:
        with self._lock:
            return self._state

    def _load_from_storage(self) -> Optional[ChatbotSettings]:
        cached = self._storage.get_item(STORAGE_KEY)
        if not cached:
            return None
        try:
            return ChatbotSettings(**json.loads(cached))
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding malformed cached config: %s", exc)
            self._storage.remove_item(STORAGE_KEY)
            return None

    def get_config(self) -> ChatbotSettings:
        """設定を返す。必要な場合のみ1回だけ取得する。"""
        with self._lock:
            if self._state is CacheState.LOADED and self._value is not None:
                return self._value
            if self._state is CacheState.LOADING and self._loaded_event is not None:
                event = self._loaded_event
                owner = False
            else:
                stored = self._load_from_storage()
                if stored is not None:
                    self._value = stored
                    self._state = CacheState.LOADED
                    return stored
                event = threading.Event()
                self._loaded_event = event
                self._state = CacheState.LOADING
                generation = self._generation
                owner = True

        if not owner:
            event.wait()
            with self._lock:
                return self._value if self._value is not None else ChatbotSettings()

        value: Optional[ChatbotSettings] = None
        try:
            value = ChatbotSettings.from_response(self._fetch())
        except Exception as exc:
            logger.warning("Chatbot config unavailable: %s", exc)

        with self._lock:
            if generation == self._generation:
                if value is not None:
                    self._value = value
                    self._state = CacheState.LOADED
                    self._storage.set_item(STORAGE_KEY, json.dumps(asdict(value)))
                else:
                    self._state = CacheState.UNLOADED
                self._loaded_event = None
            event.set()
        return value if value is not None else ChatbotSettings()

    def clear_cache(self) -> None:
        """メモリとストレージのキャッシュを破棄する（ログアウト時）"""
        with self._lock:
            self._generation += 1
            self._value = None
            self._state = CacheState.UNLOADED
            self._loaded_event = None
            self._storage.remove_item(STORAGE_KEY)
