"""Ordering Index の単体テスト"""

import threading

import pytest

from src.todo.exceptions import ValidationError
from src.todo.models import Scope
from src.todo.ordering import OrderingIndex, ScopeLocks
from src.todo.repository import TodoRepository


@pytest.fixture
def repo(tmp_path):
    return TodoRepository(db_path=tmp_path / "ordering.db")


def _insert(repo, conn, text, user_id="u1"):
    return repo.insert(conn, text, user_id=user_id, created_by_user_id=user_id).id


def test_append_assigns_dense_positions(repo):
    index = OrderingIndex()
    scope = Scope.own("u1")
    with repo.transaction() as conn:
        ids = [_insert(repo, conn, f"t{i}") for i in range(3)]
        assigned = [index.append(conn, scope, todo_id) for todo_id in ids]
        positions = index.positions(conn, scope)

    assert assigned == [0, 1, 2]
    assert positions == {ids[0]: 0, ids[1]: 1, ids[2]: 2}


def test_remove_shifts_later_positions_down(repo):
    index = OrderingIndex()
    scope = Scope.own("u1")
    with repo.transaction() as conn:
        ids = [_insert(repo, conn, f"t{i}") for i in range(4)]
        for todo_id in ids:
            index.append(conn, scope, todo_id)

        assert index.remove(conn, scope, ids[1]) is True
        assert index.remove(conn, scope, ids[1]) is False
        positions = index.positions(conn, scope)

    assert positions == {ids[0]: 0, ids[2]: 1, ids[3]: 2}


def test_scopes_are_independent(repo):
    index = OrderingIndex()
    own = Scope.own("u1")
    admin_view = Scope.admin_view("a1", "u1")
    with repo.transaction() as conn:
        first = _insert(repo, conn, "first")
        second = _insert(repo, conn, "second")
        for scope in (own, admin_view):
            index.append(conn, scope, first)
            index.append(conn, scope, second)

        index.reorder(conn, admin_view, [second, first], [first, second])

        assert index.positions(conn, own) == {first: 0, second: 1}
        assert index.positions(conn, admin_view) == {second: 0, first: 1}
        assert set(index.scopes_for_subject(conn, "u1")) == {own, admin_view}


def test_reorder_rejects_mismatched_sets_without_writing(repo):
    index = OrderingIndex()
    scope = Scope.own("u1")
    with repo.transaction() as conn:
        a = _insert(repo, conn, "a")
        b = _insert(repo, conn, "b")
        index.append(conn, scope, a)
        index.append(conn, scope, b)

        with pytest.raises(ValidationError):
            index.reorder(conn, scope, [b], [a, b])
        with pytest.raises(ValidationError):
            index.reorder(conn, scope, [b, a, "ghost"], [a, b])
        with pytest.raises(ValidationError):
            index.reorder(conn, scope, [b, b], [a, b])

        assert index.positions(conn, scope) == {a: 0, b: 1}


def test_remove_everywhere_densifies_every_scope(repo):
    index = OrderingIndex()
    own = Scope.own("u1")
    admin_view = Scope.admin_view("a1", "u1")
    with repo.transaction() as conn:
        a = _insert(repo, conn, "a")
        b = _insert(repo, conn, "b")
        c = _insert(repo, conn, "c")
        for todo_id in (a, b, c):
            index.append(conn, own, todo_id)
        for todo_id in (b, a, c):
            index.append(conn, admin_view, todo_id)

        affected = index.remove_everywhere(conn, a)

        assert set(affected) == {own, admin_view}
        assert index.positions(conn, own) == {b: 0, c: 1}
        assert index.positions(conn, admin_view) == {b: 0, c: 1}


def test_sync_drops_stale_and_appends_new_in_given_order(repo):
    index = OrderingIndex()
    scope = Scope.own("u1")
    with repo.transaction() as conn:
        a = _insert(repo, conn, "a")
        b = _insert(repo, conn, "b")
        c = _insert(repo, conn, "c")
        index.append(conn, scope, b)
        index.append(conn, scope, a)

        positions = index.sync(conn, scope, [a, c])

    assert positions == {a: 0, c: 1}


def test_scope_locks_serialize_same_scope():
    locks = ScopeLocks()
    scope = Scope.own("u1")
    order = []
    entered = threading.Event()
    release = threading.Event()

    def first():
        with locks.hold(scope):
            entered.set()
            release.wait(timeout=5)
            order.append("first")

    def second():
        entered.wait(timeout=5)
        with locks.hold(scope):
            order.append("second")

    t1 = threading.Thread(target=first)
    t2 = threading.Thread(target=second)
    t1.start()
    t2.start()
    entered.wait(timeout=5)
    release.set()
    t1.join(timeout=5)
    t2.join(timeout=5)

    assert order == ["first", "second"]


def test_scope_locks_do_not_block_other_scopes():
    locks = ScopeLocks()
    done = threading.Event()

    def other_scope():
        with locks.hold(Scope.own("u2")):
            done.set()

    with locks.hold(Scope.own("u1")):
        worker = threading.Thread(target=other_scope)
        worker.start()
        assert done.wait(timeout=5)
        worker.join(timeout=5)
