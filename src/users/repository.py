"""User Repository

ユーザーとセッショントークンのCRUD操作を提供するリポジトリクラス。
Todoと同じSQLiteファイル（data/packup.db）を使用。

OAuthによるログイン処理は対象外。セッションの発行はCLIまたは外部の認証基盤が行う。
"""

from __future__ import annotations

import logging
import os
import secrets
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from .models import User, UserRole

logger = logging.getLogger(__name__)


def determine_role(email: str, admin_emails: Iterable[str]) -> UserRole:
    """管理者メールアドレス一覧に含まれていればADMIN、それ以外はUSER"""
    normalized = {entry.strip().lower() for entry in admin_emails if entry.strip()}
    if email.strip().lower() in normalized:
        return UserRole.ADMIN
    return UserRole.USER


class UserRepository:
    """SQLiteベースのユーザー/セッション管理"""

    def __init__(self, db_path: Optional[Path] = None):
        root = Path(__file__).resolve().parents[2]
        default_path = root / "data" / "packup.db"
        env_path = os.getenv("PACKUP_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif env_path:
            self.db_path = Path(env_path)
        else:
            self.db_path = default_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL DEFAULT '',
                    avatar_url TEXT NOT NULL DEFAULT '',
                    role TEXT NOT NULL CHECK (role IN ('admin','user')),
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    expires_at TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")
            conn.commit()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            avatar_url=row["avatar_url"],
            role=UserRole(row["role"]),
            created_at=row["created_at"],
        )

    def create_user(
        self,
        email: str,
        name: str = "",
        avatar_url: str = "",
        role: UserRole = UserRole.USER,
    ) -> User:
        """新規ユーザーを作成

        Raises:
            sqlite3.IntegrityError: emailが重複している場合
        """
        user_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (id, email, name, avatar_url, role, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, email, name, avatar_url, role.value, self._now().isoformat()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        logger.info("User created: %s (%s)", user_id, role.value)
        return self._row_to_user(row)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self, exclude_admins: bool = True) -> List[User]:
        """ユーザー一覧（作成日時の新しい順）"""
        query = "SELECT * FROM users"
        if exclude_admins:
            query += " WHERE role != 'admin'"
        query += " ORDER BY created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_user(row) for row in rows]

    def create_session(self, user_id: str, ttl_hours: int = 24) -> str:
        """セッショントークンを発行して返す"""
        token = secrets.token_urlsafe(32)
        expires_at = self._now() + timedelta(hours=ttl_hours)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (token, user_id, expires_at) VALUES (?, ?, ?)",
                (token, user_id, expires_at.isoformat()),
            )
            conn.commit()
        return token

    def get_user_by_session(self, token: str) -> Optional[User]:
        """有効期限内のセッションからユーザーを解決する"""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT u.* FROM sessions s
                JOIN users u ON s.user_id = u.id
                WHERE s.token = ? AND s.expires_at > ?
                """,
                (token, self._now().isoformat()),
            ).fetchone()
        return self._row_to_user(row) if row else None

    def delete_session(self, token: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            conn.commit()
            return cursor.rowcount > 0
