"""Visibility Resolver

(閲覧者スコープ, Todo) の組について、見えるか・どのフィールドを変更できるか・
どう射影するかを決める。権限は (ロール, フィールド, レコード種別) の
明示的なテーブルで表す。
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional, Tuple

from src.users.models import UserRole

from .exceptions import ForbiddenError
from .models import RecordKind, Scope, TaskOverride, TodoItem, TodoRecord, TodoStatus

DELETE = "delete"

WRITABLE_FIELDS: FrozenSet[str] = frozenset(
    {"text", "status", "shared_with_admin", "hidden_from_user"}
)
READ_ONLY_FIELDS: FrozenSet[str] = frozenset(
    {"id", "created", "position", "is_default_task", "created_by_user_id", "user_id"}
)

_USER = UserRole.USER
_ADMIN = UserRole.ADMIN

CAPABILITIES: FrozenSet[Tuple[UserRole, str, RecordKind]] = frozenset(
    {
        (_USER, "text", RecordKind.PERSONAL),
        (_USER, "status", RecordKind.PERSONAL),
        (_USER, "shared_with_admin", RecordKind.PERSONAL),
        (_USER, DELETE, RecordKind.PERSONAL),
        (_USER, "status", RecordKind.ASSIGNED),
        (_USER, "status", RecordKind.DEFAULT_INSTANCE),
        (_USER, "hidden_from_user", RecordKind.DEFAULT_INSTANCE),
        (_ADMIN, "status", RecordKind.PERSONAL),
        (_ADMIN, "text", RecordKind.ASSIGNED),
        (_ADMIN, "status", RecordKind.ASSIGNED),
        (_ADMIN, "hidden_from_user", RecordKind.ASSIGNED),
        (_ADMIN, DELETE, RecordKind.ASSIGNED),
        (_ADMIN, "status", RecordKind.DEFAULT_INSTANCE),
        (_ADMIN, "hidden_from_user", RecordKind.DEFAULT_INSTANCE),
        (_ADMIN, "text", RecordKind.DEFAULT_TEMPLATE),
        (_ADMIN, DELETE, RecordKind.DEFAULT_TEMPLATE),
    }
)


def can_write(role: UserRole, field: str, kind: RecordKind) -> bool:
    return (role, field, kind) in CAPABILITIES


def record_kind(record: TodoRecord, scope: Scope) -> RecordKind:
    if record.is_default_task:
        return RecordKind.DEFAULT_TEMPLATE if scope.is_catalog else RecordKind.DEFAULT_INSTANCE
    if record.created_by_user_id is not None and record.created_by_user_id != record.user_id:
        return RecordKind.ASSIGNED
    return RecordKind.PERSONAL


class VisibilityResolver:
    """スコープ単位の可視性・権限・射影の判定"""

    @staticmethod
    def role_for(scope: Scope) -> UserRole:
        # 自分のリストでは管理者も一般ユーザーとして振る舞う
        return UserRole(scope.viewer_role)

    def can_view(
        self, record: TodoRecord, override: Optional[TaskOverride], scope: Scope
    ) -> bool:
        if scope.is_catalog:
            return record.is_default_task

        if record.is_default_task:
            return not (override is not None and override.hidden_from_user)

        if record.user_id != scope.subject_id:
            return False

        if scope.is_admin_view:
            if record_kind(record, scope) is RecordKind.ASSIGNED:
                return True
            return record.shared_with_admin

        return not record.hidden_from_user

    def check_write(self, scope: Scope, kind: RecordKind, fields: Iterable[str]) -> None:
        """権限のないフィールドが含まれていれば ForbiddenError"""
        role = self.role_for(scope)
        for field in fields:
            if not can_write(role, field, kind):
                raise ForbiddenError(
                    f"{role.value} may not change '{field}' on a {kind.value} todo"
                )

    def check_delete(self, scope: Scope, kind: RecordKind) -> None:
        role = self.role_for(scope)
        if not can_write(role, DELETE, kind):
            raise ForbiddenError(f"{role.value} may not delete a {kind.value} todo")

    def project(
        self,
        record: TodoRecord,
        override: Optional[TaskOverride],
        scope: Scope,
        position: Optional[int],
    ) -> TodoItem:
        status: TodoStatus = record.status
        hidden = record.hidden_from_user
        shared = record.shared_with_admin
        if record.is_default_task:
            shared = False
            hidden = False
            if not scope.is_catalog and override is not None:
                hidden = override.hidden_from_user
                if override.status is not None:
                    status = override.status
        return TodoItem(
            id=record.id,
            text=record.text,
            status=status,
            created=record.created,
            position=position,
            is_default_task=record.is_default_task,
            shared_with_admin=shared,
            hidden_from_user=hidden,
            created_by_user_id=record.created_by_user_id,
            user_id=record.user_id,
        )
