from __future__ import annotations

import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .models import TaskOverride, TodoRecord, TodoStatus

UNSET = object()

_RECORD_COLUMNS = {
    "text",
    "status",
    "shared_with_admin",
    "hidden_from_user",
}


class TodoRepository:
    """SQLiteベースのTODO保存層。

    書き込みは ``transaction()`` が返す接続上で行う。1つの論理操作
    （テンプレート削除と上書き行・並び順のカスケードなど）は同じ
    トランザクション内で完結させる。
    """

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
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _initialize(self) -> None:
        """スキーマ初期化（todos / default_task_overrides / todo_positions）"""
        conn = self._connect()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS todos (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    status TEXT NOT NULL CHECK (status IN ('pending','in-progress','done')),
                    created TEXT NOT NULL,
                    user_id TEXT,
                    created_by_user_id TEXT,
                    is_default_task INTEGER NOT NULL DEFAULT 0,
                    shared_with_admin INTEGER NOT NULL DEFAULT 0,
                    hidden_from_user INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_todos_user ON todos(user_id);
                CREATE INDEX IF NOT EXISTS idx_todos_default ON todos(is_default_task);

                CREATE TABLE IF NOT EXISTS default_task_overrides (
                    todo_id TEXT NOT NULL REFERENCES todos(id) ON DELETE CASCADE,
                    user_id TEXT NOT NULL,
                    hidden_from_user INTEGER NOT NULL DEFAULT 0,
                    status TEXT CHECK (status IS NULL OR status IN ('pending','in-progress','done')),
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (todo_id, user_id)
                );
                CREATE INDEX IF NOT EXISTS idx_overrides_user ON default_task_overrides(user_id);

                CREATE TABLE IF NOT EXISTS todo_positions (
                    viewer_role TEXT NOT NULL,
                    viewer_id TEXT NOT NULL,
                    subject_id TEXT NOT NULL,
                    todo_id TEXT NOT NULL REFERENCES todos(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    PRIMARY KEY (viewer_role, viewer_id, subject_id, todo_id)
                );
                CREATE INDEX IF NOT EXISTS idx_positions_todo ON todo_positions(todo_id);
                """
            )
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """書き込みロックを取得したトランザクション。例外時はロールバック。"""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @staticmethod
    def now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TodoRecord:
        return TodoRecord(
            id=row["id"],
            text=row["text"],
            status=TodoStatus(row["status"]),
            created=row["created"],
            user_id=row["user_id"],
            created_by_user_id=row["created_by_user_id"],
            is_default_task=bool(row["is_default_task"]),
            shared_with_admin=bool(row["shared_with_admin"]),
            hidden_from_user=bool(row["hidden_from_user"]),
        )

    @staticmethod
    def _row_to_override(row: sqlite3.Row) -> TaskOverride:
        return TaskOverride(
            todo_id=row["todo_id"],
            user_id=row["user_id"],
            hidden_from_user=bool(row["hidden_from_user"]),
            status=TodoStatus(row["status"]) if row["status"] else None,
            updated_at=row["updated_at"],
        )

    # --- todos -----------------------------------------------------------

    def insert(
        self,
        conn: sqlite3.Connection,
        text: str,
        *,
        user_id: Optional[str],
        created_by_user_id: Optional[str],
        is_default_task: bool = False,
        shared_with_admin: bool = False,
        hidden_from_user: bool = False,
    ) -> TodoRecord:
        todo_id = str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO todos (id, text, status, created, user_id, created_by_user_id,
                               is_default_task, shared_with_admin, hidden_from_user)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                todo_id,
                text,
                TodoStatus.PENDING.value,
                self.now(),
                user_id,
                created_by_user_id,
                int(is_default_task),
                int(shared_with_admin),
                int(hidden_from_user),
            ),
        )
        record = self.get_record(conn, todo_id)
        assert record is not None
        return record

    def get_record(self, conn: sqlite3.Connection, todo_id: str) -> Optional[TodoRecord]:
        row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def update_fields(
        self, conn: sqlite3.Connection, todo_id: str, changes: Dict[str, Any]
    ) -> None:
        """todos行の一部の列を更新する（text/status/共有・非表示フラグのみ）"""
        fields: List[str] = []
        params: List[object] = []
        for column, value in changes.items():
            if column not in _RECORD_COLUMNS:
                raise KeyError(column)
            if isinstance(value, TodoStatus):
                value = value.value
            elif isinstance(value, bool):
                value = int(value)
            fields.append(f"{column} = ?")
            params.append(value)
        if not fields:
            return
        params.append(todo_id)
        conn.execute(f"UPDATE todos SET {', '.join(fields)} WHERE id = ?", params)

    def delete_record(self, conn: sqlite3.Connection, todo_id: str) -> bool:
        cursor = conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
        return cursor.rowcount > 0

    def records_for_user(self, conn: sqlite3.Connection, user_id: str) -> List[TodoRecord]:
        """ユーザー所有の行とデフォルトタスクを作成順に返す（可視性判定前）"""
        rows = conn.execute(
            """
            SELECT * FROM todos
            WHERE user_id = ? OR is_default_task = 1
            ORDER BY created ASC, rowid ASC
            """,
            (user_id,),
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def default_templates(self, conn: sqlite3.Connection) -> List[TodoRecord]:
        rows = conn.execute(
            "SELECT * FROM todos WHERE is_default_task = 1 ORDER BY created ASC, rowid ASC"
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    # --- overrides -------------------------------------------------------

    def get_override(
        self, conn: sqlite3.Connection, todo_id: str, user_id: str
    ) -> Optional[TaskOverride]:
        row = conn.execute(
            "SELECT * FROM default_task_overrides WHERE todo_id = ? AND user_id = ?",
            (todo_id, user_id),
        ).fetchone()
        return self._row_to_override(row) if row else None

    def overrides_for_user(
        self, conn: sqlite3.Connection, user_id: str
    ) -> Dict[str, TaskOverride]:
        rows = conn.execute(
            "SELECT * FROM default_task_overrides WHERE user_id = ?", (user_id,)
        ).fetchall()
        return {row["todo_id"]: self._row_to_override(row) for row in rows}

    def upsert_override(
        self,
        conn: sqlite3.Connection,
        todo_id: str,
        user_id: str,
        *,
        hidden_from_user: Any = UNSET,
        status: Any = UNSET,
    ) -> TaskOverride:
        """(todo_id, user_id) の上書き行を作成または更新する。未指定の列は保持。"""
        current = self.get_override(conn, todo_id, user_id)
        hidden = current.hidden_from_user if current else False
        current_status = current.status if current else None
        if hidden_from_user is not UNSET:
            hidden = bool(hidden_from_user)
        if status is not UNSET:
            current_status = status
        conn.execute(
            """
            INSERT INTO default_task_overrides (todo_id, user_id, hidden_from_user, status, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (todo_id, user_id)
            DO UPDATE SET hidden_from_user = excluded.hidden_from_user,
                          status = excluded.status,
                          updated_at = excluded.updated_at
            """,
            (
                todo_id,
                user_id,
                int(hidden),
                current_status.value if current_status else None,
                self.now(),
            ),
        )
        override = self.get_override(conn, todo_id, user_id)
        assert override is not None
        return override

    def delete_overrides_for_task(self, conn: sqlite3.Connection, todo_id: str) -> int:
        cursor = conn.execute(
            "DELETE FROM default_task_overrides WHERE todo_id = ?", (todo_id,)
        )
        return cursor.rowcount
