"""User Models

ユーザーとロールのデータモデル定義。
ロールは作成後に変更しない（ロール変更は対象外）。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    """ユーザーロール"""

    ADMIN = "admin"
    USER = "user"


@dataclass(slots=True)
class User:
    """登録済みユーザーの表現"""

    id: str  # UUID形式
    email: str
    name: str
    avatar_url: str
    role: UserRole
    created_at: str  # ISO8601形式

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN
