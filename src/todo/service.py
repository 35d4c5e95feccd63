"""Todo Service

Todo Store / Ordering Index / Visibility Resolver / Admin Propagation を
束ねる操作層。HTTPルートとCLIはこのクラスだけを呼び出す。

各変更操作は、書き込むスコープのロックを取得してから1つのトランザクション
（BEGIN IMMEDIATE）で実行する。カスケード（上書き行の削除、並び順の詰め直し）は
起点となる書き込みと同じトランザクションで完了する。
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from src.users import User, UserRepository

from .exceptions import ForbiddenError, NotFoundError, ValidationError
from .models import (
    MAX_TEXT_LENGTH,
    Actor,
    RecordKind,
    Scope,
    TaskOverride,
    TodoItem,
    TodoRecord,
    TodoStatus,
)
from .ordering import OrderingIndex, ScopeLocks
from .propagation import AdminPropagation
from .repository import TodoRepository
from .visibility import READ_ONLY_FIELDS, WRITABLE_FIELDS, VisibilityResolver, record_kind

logger = logging.getLogger(__name__)

_Visible = Tuple[TodoRecord, Optional[TaskOverride]]


def validate_text(text: Any) -> str:
    """空白のみ・空・長すぎるテキストを拒否する"""
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("text cannot be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"text cannot exceed {MAX_TEXT_LENGTH} characters")
    return text


def normalize_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """部分更新の検証と型変換。状態を変える前に全て検査する。"""
    normalized: Dict[str, Any] = {}
    for field, value in patch.items():
        if field in READ_ONLY_FIELDS:
            raise ForbiddenError(f"'{field}' cannot be changed")
        if field not in WRITABLE_FIELDS:
            raise ValidationError(f"unknown field '{field}'")
        if field == "text":
            normalized[field] = validate_text(value)
        elif field == "status":
            try:
                normalized[field] = TodoStatus(value)
            except ValueError as exc:
                raise ValidationError(f"invalid status: {value!r}") from exc
        else:
            if not isinstance(value, bool):
                raise ValidationError(f"'{field}' must be a boolean")
            normalized[field] = value
    return normalized


class TodoService:
    """ロールとスコープを考慮したTodo操作"""

    def __init__(
        self,
        repository: Optional[TodoRepository] = None,
        user_repository: Optional[UserRepository] = None,
    ) -> None:
        self.repository = repository or TodoRepository()
        self.users = user_repository or UserRepository(db_path=self.repository.db_path)
        self.ordering = OrderingIndex()
        self.resolver = VisibilityResolver()
        self.propagation = AdminPropagation(self.repository, self.ordering)
        self.locks = ScopeLocks()

    # --- guards ----------------------------------------------------------

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("admin access required")

    def _require_user(self, user_id: str) -> User:
        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def _admin_scope(self, actor: Actor, user_id: str) -> Scope:
        self._require_admin(actor)
        self._require_user(user_id)
        return Scope.admin_view(actor.user_id, user_id)

    # --- resolution ------------------------------------------------------

    def _visible(self, conn: sqlite3.Connection, scope: Scope) -> List[_Visible]:
        """スコープで見えるレコードを作成順で返す"""
        if scope.is_catalog:
            return [(record, None) for record in self.repository.default_templates(conn)]

        records = self.repository.records_for_user(conn, scope.subject_id)
        overrides = self.repository.overrides_for_user(conn, scope.subject_id)
        visible: List[_Visible] = []
        for record in records:
            override = overrides.get(record.id) if record.is_default_task else None
            if self.resolver.can_view(record, override, scope):
                visible.append((record, override))
        return visible

    def _effective_list(self, conn: sqlite3.Connection, scope: Scope) -> List[TodoItem]:
        visible = self._visible(conn, scope)
        positions = self.ordering.sync(conn, scope, [record.id for record, _ in visible])
        items = [
            self.resolver.project(record, override, scope, positions[record.id])
            for record, override in visible
        ]
        items.sort(key=lambda item: item.position)
        return items

    def _find(
        self,
        conn: sqlite3.Connection,
        scope: Scope,
        todo_id: str,
        for_write: bool = False,
    ) -> _Visible:
        """スコープから見えるレコードを取得。見えない場合は存在しない場合と同じ NotFound。"""
        record = self.repository.get_record(conn, todo_id)
        if record is None:
            raise NotFoundError("todo not found")
        override = None
        if record.is_default_task and not scope.is_catalog:
            override = self.repository.get_override(conn, todo_id, scope.subject_id)
            # 管理者はカタログでテンプレートを見られるため、非表示中でも上書きを操作できる
            if for_write and scope.is_admin_view:
                return record, override
        if not self.resolver.can_view(record, override, scope):
            raise NotFoundError("todo not found")
        return record, override

    def _item(self, conn: sqlite3.Connection, scope: Scope, todo_id: str) -> TodoItem:
        """スコープ内の位置付きで1件を射影する"""
        for item in self._effective_list(conn, scope):
            if item.id == todo_id:
                return item
        record = self.repository.get_record(conn, todo_id)
        if record is None:
            raise NotFoundError("todo not found")
        override = None
        if record.is_default_task and not scope.is_catalog:
            override = self.repository.get_override(conn, todo_id, scope.subject_id)
        return self.resolver.project(record, override, scope, None)

    def _refresh_subject(self, conn: sqlite3.Connection, subject_id: str) -> None:
        """ユーザーの全スコープ（本人と管理者ビュー）の並びを可視集合に合わせる"""
        scopes = set(self.ordering.scopes_for_subject(conn, subject_id))
        scopes.add(Scope.own(subject_id))
        for scope in sorted(scopes):
            visible = self._visible(conn, scope)
            self.ordering.sync(conn, scope, [record.id for record, _ in visible])

    # --- generic operations ---------------------------------------------

    def _list(self, scope: Scope) -> List[TodoItem]:
        with self.locks.hold(scope), self.repository.transaction() as conn:
            return self._effective_list(conn, scope)

    def _get(self, scope: Scope, todo_id: str) -> TodoItem:
        with self.locks.hold(scope), self.repository.transaction() as conn:
            self._find(conn, scope, todo_id)
            return self._item(conn, scope, todo_id)

    def _update(self, scope: Scope, todo_id: str, patch: Mapping[str, Any]) -> TodoItem:
        changes = normalize_patch(patch)
        with self.locks.hold(scope), self.repository.transaction() as conn:
            record, _ = self._find(conn, scope, todo_id, for_write=True)
            if not changes:
                return self._item(conn, scope, todo_id)

            kind = record_kind(record, scope)
            self.resolver.check_write(scope, kind, changes.keys())

            if kind is RecordKind.DEFAULT_INSTANCE:
                if "status" in changes:
                    self.propagation.set_status(
                        conn, todo_id, scope.subject_id, changes["status"]
                    )
                if "hidden_from_user" in changes:
                    self.propagation.set_hidden(
                        conn, todo_id, scope.subject_id, changes["hidden_from_user"]
                    )
            else:
                self.repository.update_fields(conn, todo_id, changes)
                if kind is RecordKind.DEFAULT_TEMPLATE:
                    refreshed = self.repository.get_record(conn, todo_id)
                    assert refreshed is not None
                    self.propagation.on_template_text_updated(conn, refreshed)

            if {"shared_with_admin", "hidden_from_user"} & changes.keys():
                self._refresh_subject(conn, scope.subject_id)

            logger.info("Todo updated: %s %s", todo_id, sorted(changes))
            return self._item(conn, scope, todo_id)

    def _delete(self, scope: Scope, todo_id: str) -> None:
        with self.locks.hold(scope), self.repository.transaction() as conn:
            record, _ = self._find(conn, scope, todo_id)
            self.resolver.check_delete(scope, record_kind(record, scope))
            if record.is_default_task:
                self.propagation.on_template_deleted(conn, todo_id)
            else:
                self.ordering.remove_everywhere(conn, todo_id)
            self.repository.delete_record(conn, todo_id)
        logger.info("Todo deleted: %s", todo_id)

    def _reorder(self, scope: Scope, ids: Sequence[str]) -> None:
        with self.locks.hold(scope), self.repository.transaction() as conn:
            visible = [record.id for record, _ in self._visible(conn, scope)]
            self.ordering.reorder(conn, scope, ids, visible)
        logger.info("Scope reordered: %s (%d items)", scope, len(ids))

    # --- own list --------------------------------------------------------

    def list_todos(self, actor: Actor, exclude_admin_todos: bool = False) -> List[TodoItem]:
        """自分の有効リストを position 順で返す"""
        items = self._list(Scope.own(actor.user_id))
        if exclude_admin_todos:
            items = [item for item in items if not item.is_default_task]
        return items

    def get_todo(self, actor: Actor, todo_id: str) -> TodoItem:
        return self._get(Scope.own(actor.user_id), todo_id)

    def create_todo(
        self, actor: Actor, text: str, shared_with_admin: bool = True
    ) -> TodoItem:
        """自分のリストの末尾にTodoを作成（shared_with_admin は既定で True）"""
        validate_text(text)
        scope = Scope.own(actor.user_id)
        with self.locks.hold(scope), self.repository.transaction() as conn:
            self._effective_list(conn, scope)
            record = self.repository.insert(
                conn,
                text,
                user_id=actor.user_id,
                created_by_user_id=actor.user_id,
                shared_with_admin=shared_with_admin,
            )
            self.ordering.append(conn, scope, record.id)
            self._refresh_subject(conn, actor.user_id)
            item = self._item(conn, scope, record.id)
        logger.info("Todo created: %s by %s", record.id, actor.user_id)
        return item

    def update_todo(self, actor: Actor, todo_id: str, patch: Mapping[str, Any]) -> TodoItem:
        return self._update(Scope.own(actor.user_id), todo_id, patch)

    def delete_todo(self, actor: Actor, todo_id: str) -> None:
        self._delete(Scope.own(actor.user_id), todo_id)

    def reorder_todos(self, actor: Actor, ids: Sequence[str]) -> None:
        self._reorder(Scope.own(actor.user_id), ids)

    # --- default task catalog -------------------------------------------

    def list_default_tasks(self, actor: Actor) -> List[TodoItem]:
        self._require_admin(actor)
        return self._list(Scope.catalog())

    def create_default_task(self, actor: Actor, text: str) -> TodoItem:
        self._require_admin(actor)
        validate_text(text)
        scope = Scope.catalog()
        with self.locks.hold(scope), self.repository.transaction() as conn:
            self._effective_list(conn, scope)
            record = self.repository.insert(
                conn,
                text,
                user_id=None,
                created_by_user_id=actor.user_id,
                is_default_task=True,
            )
            position = self.propagation.on_template_created(conn, record)
            item = self.resolver.project(record, None, scope, position)
        logger.info("Default task created: %s by %s", record.id, actor.user_id)
        return item

    def update_default_task(
        self, actor: Actor, todo_id: str, patch: Mapping[str, Any]
    ) -> TodoItem:
        self._require_admin(actor)
        return self._update(Scope.catalog(), todo_id, patch)

    def delete_default_task(self, actor: Actor, todo_id: str) -> None:
        self._require_admin(actor)
        self._delete(Scope.catalog(), todo_id)

    def reorder_default_tasks(self, actor: Actor, ids: Sequence[str]) -> None:
        self._require_admin(actor)
        self._reorder(Scope.catalog(), ids)

    # --- admin view of a user's list ------------------------------------

    def list_users(self, actor: Actor) -> List[User]:
        self._require_admin(actor)
        return self.users.list_users(exclude_admins=True)

    def list_user_todos(self, actor: Actor, user_id: str) -> List[TodoItem]:
        return self._list(self._admin_scope(actor, user_id))

    def get_user_todo(self, actor: Actor, user_id: str, todo_id: str) -> TodoItem:
        return self._get(self._admin_scope(actor, user_id), todo_id)

    def create_user_todo(
        self, actor: Actor, user_id: str, text: str, hidden_from_user: bool = False
    ) -> TodoItem:
        """管理者がユーザーのリストに直接Todoを作成する"""
        scope = self._admin_scope(actor, user_id)
        if user_id == actor.user_id:
            raise ValidationError("use the personal todo endpoint for your own list")
        validate_text(text)
        with self.locks.hold(scope), self.repository.transaction() as conn:
            self._effective_list(conn, scope)
            record = self.repository.insert(
                conn,
                text,
                user_id=user_id,
                created_by_user_id=actor.user_id,
                shared_with_admin=True,
                hidden_from_user=hidden_from_user,
            )
            self.ordering.append(conn, scope, record.id)
            self._refresh_subject(conn, user_id)
            item = self._item(conn, scope, record.id)
        logger.info("Todo %s created for user %s by admin %s", record.id, user_id, actor.user_id)
        return item

    def update_user_todo(
        self, actor: Actor, user_id: str, todo_id: str, patch: Mapping[str, Any]
    ) -> TodoItem:
        return self._update(self._admin_scope(actor, user_id), todo_id, patch)

    def delete_user_todo(self, actor: Actor, user_id: str, todo_id: str) -> None:
        self._delete(self._admin_scope(actor, user_id), todo_id)

    def reorder_user_todos(self, actor: Actor, user_id: str, ids: Sequence[str]) -> None:
        self._reorder(self._admin_scope(actor, user_id), ids)
