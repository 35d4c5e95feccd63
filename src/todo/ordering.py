"""Ordering Index

スコープごとに 0 始まりで連続した position を維持する。
同一スコープへの append/remove/reorder は ScopeLocks で直列化し、
異なるスコープの操作は互いにブロックしない。
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Sequence

from .exceptions import ValidationError
from .models import Scope

logger = logging.getLogger(__name__)


class ScopeLocks:
    """Thread-safe registry of one lock per scope."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: Dict[Scope, threading.Lock] = {}

    def _get(self, scope: Scope) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(scope)
            if lock is None:
                lock = threading.Lock()
                self._locks[scope] = lock
            return lock

    @contextmanager
    def hold(self, *scopes: Scope) -> Iterator[None]:
        """Acquire the locks of all given scopes in a stable order."""
        locks = [self._get(scope) for scope in sorted(set(scopes))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


class OrderingIndex:
    """todo_positions テーブル上の並び順操作。呼び出し側のトランザクション内で使う。"""

    @staticmethod
    def _key(scope: Scope) -> tuple:
        return (scope.viewer_role, scope.viewer_id, scope.subject_id)

    def positions(self, conn: sqlite3.Connection, scope: Scope) -> Dict[str, int]:
        rows = conn.execute(
            """
            SELECT todo_id, position FROM todo_positions
            WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ?
            ORDER BY position ASC
            """,
            self._key(scope),
        ).fetchall()
        return {row["todo_id"]: row["position"] for row in rows}

    def count(self, conn: sqlite3.Connection, scope: Scope) -> int:
        row = conn.execute(
            """
            SELECT COUNT(*) AS n FROM todo_positions
            WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ?
            """,
            self._key(scope),
        ).fetchone()
        return row["n"]

    def append(self, conn: sqlite3.Connection, scope: Scope, todo_id: str) -> int:
        """末尾に追加し、割り当てた position を返す"""
        position = self.count(conn, scope)
        conn.execute(
            """
            INSERT INTO todo_positions (viewer_role, viewer_id, subject_id, todo_id, position)
            VALUES (?, ?, ?, ?, ?)
            """,
            (*self._key(scope), todo_id, position),
        )
        return position

    def remove(self, conn: sqlite3.Connection, scope: Scope, todo_id: str) -> bool:
        """削除して後続の position を1つずつ詰める"""
        key = self._key(scope)
        row = conn.execute(
            """
            SELECT position FROM todo_positions
            WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ? AND todo_id = ?
            """,
            (*key, todo_id),
        ).fetchone()
        if row is None:
            return False
        removed = row["position"]
        conn.execute(
            """
            DELETE FROM todo_positions
            WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ? AND todo_id = ?
            """,
            (*key, todo_id),
        )
        conn.execute(
            """
            UPDATE todo_positions SET position = position - 1
            WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ? AND position > ?
            """,
            (*key, removed),
        )
        return True

    def scopes_containing(self, conn: sqlite3.Connection, todo_id: str) -> List[Scope]:
        rows = conn.execute(
            "SELECT viewer_role, viewer_id, subject_id FROM todo_positions WHERE todo_id = ?",
            (todo_id,),
        ).fetchall()
        return [Scope(row["viewer_role"], row["viewer_id"], row["subject_id"]) for row in rows]

    def scopes_for_subject(self, conn: sqlite3.Connection, subject_id: str) -> List[Scope]:
        rows = conn.execute(
            """
            SELECT DISTINCT viewer_role, viewer_id, subject_id FROM todo_positions
            WHERE subject_id = ?
            """,
            (subject_id,),
        ).fetchall()
        return [Scope(row["viewer_role"], row["viewer_id"], row["subject_id"]) for row in rows]

    def remove_everywhere(self, conn: sqlite3.Connection, todo_id: str) -> List[Scope]:
        """全スコープから削除し、影響したスコープを返す"""
        scopes = self.scopes_containing(conn, todo_id)
        for scope in scopes:
            self.remove(conn, scope, todo_id)
        return scopes

    def reorder(
        self,
        conn: sqlite3.Connection,
        scope: Scope,
        ordered_ids: Sequence[str],
        visible_ids: Iterable[str],
    ) -> None:
        """全件指定の並び替え。集合が一致しない場合は何も書かずに ValidationError。"""
        visible = set(visible_ids)
        requested = list(ordered_ids)
        if len(set(requested)) != len(requested):
            raise ValidationError("reorder ids contain duplicates")
        if len(requested) != len(visible) or set(requested) != visible:
            missing = sorted(visible - set(requested))
            unknown = sorted(set(requested) - visible)
            raise ValidationError(
                f"reorder ids must match the visible list exactly "
                f"(missing={missing}, unknown={unknown})"
            )

        key = self._key(scope)
        conn.execute(
            "DELETE FROM todo_positions WHERE viewer_role = ? AND viewer_id = ? AND subject_id = ?",
            key,
        )
        conn.executemany(
            """
            INSERT INTO todo_positions (viewer_role, viewer_id, subject_id, todo_id, position)
            VALUES (?, ?, ?, ?, ?)
            """,
            [(*key, todo_id, index) for index, todo_id in enumerate(requested)],
        )
        logger.debug("Scope %s reordered (%d items)", scope, len(requested))

    def sync(
        self, conn: sqlite3.Connection, scope: Scope, visible_ids: Sequence[str]
    ) -> Dict[str, int]:
        """保存済みの並びを現在の可視集合に合わせる。

        見えなくなったIDは remove（詰め直し）し、新たに見えるIDは
        ``visible_ids`` の順（作成順）で末尾に append する。
        """
        visible = set(visible_ids)
        stored = self.positions(conn, scope)
        for todo_id in [todo_id for todo_id in stored if todo_id not in visible]:
            self.remove(conn, scope, todo_id)
        for todo_id in visible_ids:
            if todo_id not in stored:
                self.append(conn, scope, todo_id)
        return self.positions(conn, scope)
