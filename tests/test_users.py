import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from src.users import UserRepository, UserRole, determine_role


def test_determine_role_matches_admin_emails_case_insensitively():
    admins = ["Boss@Example.com", " ops@example.com "]
    assert determine_role("boss@example.com", admins) is UserRole.ADMIN
    assert determine_role("ops@example.com", admins) is UserRole.ADMIN
    assert determine_role("someone@example.com", admins) is UserRole.USER
    assert determine_role("boss@example.com", []) is UserRole.USER


def test_user_crud_and_listing(tmp_path):
    repo = UserRepository(db_path=tmp_path / "users.db")
    admin = repo.create_user("admin@example.com", "Admin", role=UserRole.ADMIN)
    alice = repo.create_user("alice@example.com", "Alice")

    assert admin.is_admin
    assert not alice.is_admin
    assert repo.get_user(alice.id) == alice
    assert repo.get_user_by_email("alice@example.com") == alice
    assert repo.get_user("missing") is None

    assert [user.id for user in repo.list_users()] == [alice.id]
    assert {user.id for user in repo.list_users(exclude_admins=False)} == {admin.id, alice.id}

    with pytest.raises(sqlite3.IntegrityError):
        repo.create_user("alice@example.com")


def test_session_lifecycle(tmp_path):
    repo = UserRepository(db_path=tmp_path / "users.db")
    alice = repo.create_user("alice@example.com", "Alice")

    token = repo.create_session(alice.id)
    assert repo.get_user_by_session(token) == alice
    assert repo.get_user_by_session("unknown") is None

    assert repo.delete_session(token) is True
    assert repo.get_user_by_session(token) is None
    assert repo.delete_session(token) is False


def test_expired_session_is_rejected(tmp_path):
    repo = UserRepository(db_path=tmp_path / "users.db")
    alice = repo.create_user("alice@example.com", "Alice")
    token = repo.create_session(alice.id)

    expired = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
    with sqlite3.connect(repo.db_path) as conn:
        conn.execute("UPDATE sessions SET expires_at = ? WHERE token = ?", (expired, token))
        conn.commit()

    assert repo.get_user_by_session(token) is None
