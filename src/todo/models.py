from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.users.models import UserRole

MAX_TEXT_LENGTH = 200
CATALOG_SCOPE_ID = "default-tasks"


class TodoStatus(str, Enum):
    """Todoステータス。任意の値から任意の値へ遷移可能（終端状態なし）。"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class RecordKind(str, Enum):
    """権限判定に使うレコード種別"""

    PERSONAL = "personal"  # ユーザー自身が作成
    ASSIGNED = "assigned"  # 管理者がユーザーのリストに直接作成
    DEFAULT_TEMPLATE = "default_template"  # デフォルトタスクのカタログ行
    DEFAULT_INSTANCE = "default_instance"  # ユーザーのリスト内に現れるデフォルトタスク


@dataclass(frozen=True, slots=True)
class Actor:
    """リクエストを発行した利用者（セッションから解決済み）"""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass(frozen=True, slots=True, order=True)
class Scope:
    """並び順と可視性の単位。

    - 自分のリスト: (user, U, U)
    - 管理者AによるユーザーUのリスト閲覧: (admin, A, U)
    - デフォルトタスクのカタログ: (admin, default-tasks, default-tasks)
    """

    viewer_role: str
    viewer_id: str
    subject_id: str

    @classmethod
    def own(cls, user_id: str) -> "Scope":
        return cls(UserRole.USER.value, user_id, user_id)

    @classmethod
    def admin_view(cls, admin_id: str, user_id: str) -> "Scope":
        return cls(UserRole.ADMIN.value, admin_id, user_id)

    @classmethod
    def catalog(cls) -> "Scope":
        return cls(UserRole.ADMIN.value, CATALOG_SCOPE_ID, CATALOG_SCOPE_ID)

    @property
    def is_catalog(self) -> bool:
        return self.subject_id == CATALOG_SCOPE_ID

    @property
    def is_admin_view(self) -> bool:
        return self.viewer_role == UserRole.ADMIN.value and not self.is_catalog


@dataclass(slots=True)
class TodoRecord:
    """永続化済みTodo行（スコープ適用前）"""

    id: str
    text: str
    status: TodoStatus
    created: str
    user_id: Optional[str]
    created_by_user_id: Optional[str]
    is_default_task: bool = False
    shared_with_admin: bool = False
    hidden_from_user: bool = False


@dataclass(slots=True)
class TaskOverride:
    """デフォルトタスクに対するユーザー単位の上書き（疎なオーバーレイ）"""

    todo_id: str
    user_id: str
    hidden_from_user: bool = False
    status: Optional[TodoStatus] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class TodoItem:
    """閲覧者スコープに射影したTodo。APIとCLIはこれを返す。

    position はそのスコープの一覧内の位置。更新の結果一覧から外れた場合は None。
    """

    id: str
    text: str
    status: TodoStatus
    created: str
    position: Optional[int]
    is_default_task: bool
    shared_with_admin: bool
    hidden_from_user: bool
    created_by_user_id: Optional[str]
    user_id: Optional[str] = None
