"""
設定管理モジュール

関連クラス:
  - server.dependencies: この設定からリポジトリ・セッション・ロガーを構成
  - server.routes.config: ChatbotConfig をクライアントへ公開
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class ServerConfig:
    """HTTPサーバー設定"""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class SessionConfig:
    """セッションクッキー設定"""

    cookie_name: str = "session_token"
    ttl_hours: int = 24
    secure: bool = False


@dataclass
class ChatbotConfig:
    """クライアントへ配布するチャットボット設定"""

    enabled: bool = False
    api_url: str = ""
    api_token: str = ""

    @property
    def effective_enabled(self) -> bool:
        """URLとトークンが揃っている場合のみ有効"""
        return self.enabled and bool(self.api_url) and bool(self.api_token)


def _split_emails(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(entry).strip() for entry in value if str(entry).strip()]


@dataclass
class Config:
    """アプリケーション設定クラス"""

    server: ServerConfig = field(default_factory=ServerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    chatbot: ChatbotConfig = field(default_factory=ChatbotConfig)

    # DB設定（None の場合はリポジトリ側の既定値 / PACKUP_DB_PATH）
    db_path: Optional[str] = None

    # ログ設定
    log_level: str = "INFO"
    log_file: str = "logs/packup.log"

    # 管理者として扱うメールアドレス
    admin_emails: List[str] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時はconfig/app_config.yamlを使用）

        Returns:
            Config: 設定インスタンス（ファイルがなければ環境変数から構成）
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "app_config.yaml"

        if not Path(config_path).exists():
            return cls.from_env()

        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}

        server_data = yaml_data.get("server", {})
        database_data = yaml_data.get("database", {})
        log_data = yaml_data.get("log", {})
        session_data = yaml_data.get("session", {})
        auth_data = yaml_data.get("auth", {})
        chatbot_data = yaml_data.get("chatbot", {})

        # 環境変数が設定されていれば優先
        admin_emails = os.getenv("ADMIN_EMAILS")

        return cls(
            server=ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=int(os.getenv("PORT", server_data.get("port", 8080))),
            ),
            session=SessionConfig(
                cookie_name=session_data.get("cookie_name", "session_token"),
                ttl_hours=int(session_data.get("ttl_hours", 24)),
                secure=bool(session_data.get("secure", False)),
            ),
            chatbot=ChatbotConfig(
                enabled=bool(chatbot_data.get("enabled", False)),
                api_url=chatbot_data.get("api_url", ""),
                api_token=chatbot_data.get("api_token", ""),
            ),
            db_path=os.getenv("PACKUP_DB_PATH") or database_data.get("path"),
            log_level=os.getenv("LOG_LEVEL", log_data.get("level", "INFO")),
            log_file=log_data.get("file", "logs/packup.log"),
            admin_emails=_split_emails(
                admin_emails if admin_emails is not None else auth_data.get("admin_emails")
            ),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """環境変数から設定を読み込む"""
        return cls(
            server=ServerConfig(
                host=os.getenv("HOST", "0.0.0.0"),
                port=int(os.getenv("PORT", "8080")),
            ),
            session=SessionConfig(
                cookie_name=os.getenv("SESSION_COOKIE_NAME", "session_token"),
                ttl_hours=int(os.getenv("SESSION_TTL_HOURS", "24")),
                secure=os.getenv("SESSION_SECURE") == "true",
            ),
            chatbot=ChatbotConfig(
                enabled=os.getenv("CHATBOT_ENABLED") == "true",
                api_url=os.getenv("CHATBOT_API_URL", ""),
                api_token=os.getenv("CHATBOT_API_TOKEN", ""),
            ),
            db_path=os.getenv("PACKUP_DB_PATH"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/packup.log"),
            admin_emails=_split_emails(os.getenv("ADMIN_EMAILS", "")),
        )
