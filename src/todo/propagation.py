"""Admin Propagation

デフォルトタスク（テンプレート）の作成・更新・削除に伴うユーザー単位の
上書き行と並び順の後始末。テンプレート本文は1行だけ保持し、ユーザーごとに
複製しない。上書き行は (todo_id, user_id) の疎なオーバーレイ。
"""

from __future__ import annotations

import logging
import sqlite3
from typing import List

from .models import Scope, TaskOverride, TodoRecord, TodoStatus
from .ordering import OrderingIndex
from .repository import TodoRepository

logger = logging.getLogger(__name__)


class AdminPropagation:
    """テンプレート変更をユーザーのリストへ伝播する"""

    def __init__(self, repository: TodoRepository, ordering: OrderingIndex) -> None:
        self.repository = repository
        self.ordering = ordering

    def on_template_created(self, conn: sqlite3.Connection, record: TodoRecord) -> int:
        """カタログの末尾に並べる。ユーザー側の行は作らない（上書きなし＝表示）。"""
        return self.ordering.append(conn, Scope.catalog(), record.id)

    def on_template_text_updated(self, conn: sqlite3.Connection, record: TodoRecord) -> None:
        # 本文はテンプレートにのみ保存されるため、全ユーザーに即時反映される
        logger.info("Default task text updated: %s", record.id)

    def on_template_deleted(self, conn: sqlite3.Connection, todo_id: str) -> List[Scope]:
        """上書き行を削除し、全スコープから除いて詰め直す（テンプレート削除と同一トランザクション）"""
        removed = self.repository.delete_overrides_for_task(conn, todo_id)
        scopes = self.ordering.remove_everywhere(conn, todo_id)
        logger.info(
            "Default task %s cascade: %d overrides, %d scopes", todo_id, removed, len(scopes)
        )
        return scopes

    def set_hidden(
        self, conn: sqlite3.Connection, todo_id: str, user_id: str, hidden: bool
    ) -> TaskOverride:
        """あるユーザーに対してのみ表示/非表示を切り替える"""
        override = self.repository.upsert_override(
            conn, todo_id, user_id, hidden_from_user=hidden
        )
        logger.info("Default task %s hidden=%s for user %s", todo_id, hidden, user_id)
        return override

    def set_status(
        self, conn: sqlite3.Connection, todo_id: str, user_id: str, status: TodoStatus
    ) -> TaskOverride:
        """進捗はユーザーごとに保持する"""
        return self.repository.upsert_override(conn, todo_id, user_id, status=status)
