"""TodoService のテスト（可視性・並び順・デフォルトタスク伝播）"""

import threading

import pytest

from src.todo import (
    Actor,
    ForbiddenError,
    NotFoundError,
    TodoRepository,
    TodoService,
    TodoStatus,
    ValidationError,
)
from src.users import UserRole


@pytest.fixture
def service(tmp_path):
    return TodoService(TodoRepository(db_path=tmp_path / "service.db"))


@pytest.fixture
def admin(service):
    user = service.users.create_user("admin@example.com", "Admin", role=UserRole.ADMIN)
    return Actor(user_id=user.id, role=user.role)


@pytest.fixture
def alice(service):
    user = service.users.create_user("alice@example.com", "Alice")
    return Actor(user_id=user.id, role=user.role)


@pytest.fixture
def bob(service):
    user = service.users.create_user("bob@example.com", "Bob")
    return Actor(user_id=user.id, role=user.role)


def texts(items):
    return [item.text for item in items]


def assert_dense(items):
    assert [item.position for item in items] == list(range(len(items)))


# --- personal todos -------------------------------------------------------


def test_create_then_get_round_trip(service, alice):
    created = service.create_todo(alice, "Buy milk")
    fetched = service.get_todo(alice, created.id)

    assert fetched == created
    assert created.text == "Buy milk"
    assert created.status is TodoStatus.PENDING
    assert created.shared_with_admin is True
    assert created.hidden_from_user is False
    assert created.is_default_task is False
    assert created.position == 0
    assert created.created_by_user_id == alice.user_id
    assert created.user_id == alice.user_id


def test_update_with_empty_patch_returns_record_unchanged(service, alice):
    created = service.create_todo(alice, "Buy milk")
    assert service.update_todo(alice, created.id, {}) == created


@pytest.mark.parametrize("text", ["", "   ", "x" * 201])
def test_invalid_text_is_rejected(service, alice, text):
    with pytest.raises(ValidationError):
        service.create_todo(alice, text)
    assert service.list_todos(alice) == []


def test_text_at_max_length_is_accepted(service, alice):
    assert service.create_todo(alice, "x" * 200).text == "x" * 200


def test_update_validates_before_writing(service, alice):
    created = service.create_todo(alice, "Buy milk")

    with pytest.raises(ValidationError):
        service.update_todo(alice, created.id, {"status": "done", "text": ""})
    with pytest.raises(ValidationError):
        service.update_todo(alice, created.id, {"status": "archived"})
    with pytest.raises(ValidationError):
        service.update_todo(alice, created.id, {"color": "red"})
    with pytest.raises(ForbiddenError):
        service.update_todo(alice, created.id, {"is_default_task": True})

    assert service.get_todo(alice, created.id) == created


def test_status_moves_freely_between_values(service, alice):
    created = service.create_todo(alice, "Buy milk")
    for status in ("done", "pending", "in-progress", "done"):
        updated = service.update_todo(alice, created.id, {"status": status})
        assert updated.status is TodoStatus(status)


def test_other_users_todos_are_not_found(service, alice, bob):
    created = service.create_todo(alice, "private")
    with pytest.raises(NotFoundError):
        service.get_todo(bob, created.id)
    with pytest.raises(NotFoundError):
        service.update_todo(bob, created.id, {"status": "done"})
    with pytest.raises(NotFoundError):
        service.delete_todo(bob, created.id)
    with pytest.raises(NotFoundError):
        service.get_todo(alice, "missing-id")


# --- ordering -------------------------------------------------------------


def test_positions_stay_dense_through_create_delete_reorder(service, admin, alice):
    ids = [service.create_todo(alice, f"task {i}").id for i in range(5)]
    assert_dense(service.list_todos(alice))

    service.delete_todo(alice, ids[1])
    service.delete_todo(alice, ids[3])
    items = service.list_todos(alice)
    assert_dense(items)
    assert texts(items) == ["task 0", "task 2", "task 4"]

    service.reorder_todos(alice, [ids[4], ids[0], ids[2]])
    items = service.list_todos(alice)
    assert_dense(items)
    assert texts(items) == ["task 4", "task 0", "task 2"]

    service.create_default_task(admin, "Onboard")
    items = service.list_todos(alice)
    assert_dense(items)
    assert texts(items) == ["task 4", "task 0", "task 2", "Onboard"]


def test_reorder_with_mismatched_ids_leaves_positions_unchanged(service, alice):
    a = service.create_todo(alice, "a").id
    b = service.create_todo(alice, "b").id
    c = service.create_todo(alice, "c").id
    before = service.list_todos(alice)

    for ids in ([a, b], [a, b, c, "ghost"], [c, b, a, a], [c, b, "ghost"]):
        with pytest.raises(ValidationError):
            service.reorder_todos(alice, ids)

    assert service.list_todos(alice) == before


def test_admin_view_has_its_own_ordering(service, admin, alice):
    a = service.create_todo(alice, "a").id
    b = service.create_todo(alice, "b").id

    assert texts(service.list_user_todos(admin, alice.user_id)) == ["a", "b"]
    service.reorder_user_todos(admin, alice.user_id, [b, a])

    assert texts(service.list_user_todos(admin, alice.user_id)) == ["b", "a"]
    assert texts(service.list_todos(alice)) == ["a", "b"]

    service.reorder_todos(alice, [b, a])
    service.reorder_todos(alice, [a, b])
    assert texts(service.list_user_todos(admin, alice.user_id)) == ["b", "a"]


def test_concurrent_creates_keep_positions_dense(service, alice):
    errors = []

    def worker(n):
        try:
            for i in range(5):
                service.create_todo(alice, f"w{n}-{i}")
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    items = service.list_todos(alice)
    assert len(items) == 20
    assert_dense(items)


# --- sharing with admins --------------------------------------------------


def test_buy_milk_unshared_disappears_from_admin_view_only(service, admin, alice):
    service.create_todo(alice, "Walk dog")
    milk = service.create_todo(alice, "Buy milk")
    service.create_todo(alice, "Call mom")
    assert "Buy milk" in texts(service.list_user_todos(admin, alice.user_id))

    updated = service.update_todo(alice, milk.id, {"shared_with_admin": False})
    assert updated.shared_with_admin is False
    assert updated.position == 1

    admin_items = service.list_user_todos(admin, alice.user_id)
    assert "Buy milk" not in texts(admin_items)
    assert_dense(admin_items)

    own_items = service.list_todos(alice)
    assert texts(own_items) == ["Walk dog", "Buy milk", "Call mom"]
    assert own_items[1].position == 1

    with pytest.raises(NotFoundError):
        service.get_user_todo(admin, alice.user_id, milk.id)


def test_private_todo_created_unshared(service, admin, alice):
    service.create_todo(alice, "secret", shared_with_admin=False)
    assert service.list_user_todos(admin, alice.user_id) == []
    assert texts(service.list_todos(alice)) == ["secret"]


def test_admin_may_only_change_status_of_user_authored_todo(service, admin, alice):
    created = service.create_todo(alice, "Buy milk")

    updated = service.update_user_todo(admin, alice.user_id, created.id, {"status": "done"})
    assert updated.status is TodoStatus.DONE
    assert service.get_todo(alice, created.id).status is TodoStatus.DONE

    with pytest.raises(ForbiddenError):
        service.update_user_todo(admin, alice.user_id, created.id, {"text": "Buy bread"})
    with pytest.raises(ForbiddenError):
        service.update_user_todo(
            admin, alice.user_id, created.id, {"shared_with_admin": False}
        )
    with pytest.raises(ForbiddenError):
        service.delete_user_todo(admin, alice.user_id, created.id)


# --- admin-created todos --------------------------------------------------


def test_admin_creates_todo_in_users_list(service, admin, alice):
    service.create_todo(alice, "own")
    assigned = service.create_user_todo(admin, alice.user_id, "Submit timesheet")

    assert assigned.created_by_user_id == admin.user_id
    assert assigned.user_id == alice.user_id
    assert assigned.hidden_from_user is False
    assert texts(service.list_todos(alice)) == ["own", "Submit timesheet"]

    with pytest.raises(ForbiddenError):
        service.update_todo(alice, assigned.id, {"text": "changed"})
    with pytest.raises(ForbiddenError):
        service.delete_todo(alice, assigned.id)
    assert service.update_todo(alice, assigned.id, {"status": "done"}).status is TodoStatus.DONE

    renamed = service.update_user_todo(admin, alice.user_id, assigned.id, {"text": "Timesheet"})
    assert renamed.text == "Timesheet"

    service.delete_user_todo(admin, alice.user_id, assigned.id)
    assert texts(service.list_todos(alice)) == ["own"]
    assert_dense(service.list_user_todos(admin, alice.user_id))


def test_admin_created_hidden_todo_stays_in_admin_view(service, admin, alice):
    hidden = service.create_user_todo(admin, alice.user_id, "Prep review", hidden_from_user=True)

    assert service.list_todos(alice) == []
    assert texts(service.list_user_todos(admin, alice.user_id)) == ["Prep review"]

    service.update_user_todo(admin, alice.user_id, hidden.id, {"hidden_from_user": False})
    assert texts(service.list_todos(alice)) == ["Prep review"]


def test_admin_routes_require_admin_and_existing_user(service, admin, alice, bob):
    with pytest.raises(ForbiddenError):
        service.list_user_todos(alice, bob.user_id)
    with pytest.raises(ForbiddenError):
        service.create_default_task(alice, "nope")
    with pytest.raises(NotFoundError):
        service.list_user_todos(admin, "no-such-user")
    with pytest.raises(ValidationError):
        service.create_user_todo(admin, admin.user_id, "self")


def test_list_users_excludes_admins(service, admin, alice, bob):
    users = service.list_users(admin)
    assert {user.id for user in users} == {alice.user_id, bob.user_id}
    with pytest.raises(ForbiddenError):
        service.list_users(alice)


# --- default tasks --------------------------------------------------------


def test_onboard_hidden_for_one_user_only(service, admin, alice, bob):
    service.create_todo(bob, "Bob's own")
    onboard = service.create_default_task(admin, "Onboard")
    assert texts(service.list_todos(alice)) == ["Onboard"]
    bob_before = service.list_todos(bob)
    assert texts(bob_before) == ["Bob's own", "Onboard"]

    service.update_todo(alice, onboard.id, {"hidden_from_user": True})

    assert "Onboard" not in texts(service.list_todos(alice))
    bob_after = service.list_todos(bob)
    assert bob_after == bob_before
    assert [item.id for item in service.list_default_tasks(admin)] == [onboard.id]


def test_default_task_status_is_per_user(service, admin, alice, bob):
    onboard = service.create_default_task(admin, "Onboard")
    service.update_todo(alice, onboard.id, {"status": "done"})

    assert service.get_todo(alice, onboard.id).status is TodoStatus.DONE
    assert service.get_todo(bob, onboard.id).status is TodoStatus.PENDING
    assert service.list_default_tasks(admin)[0].status is TodoStatus.PENDING


def test_default_task_text_edit_applies_to_everyone(service, admin, alice, bob):
    onboard = service.create_default_task(admin, "Onboard")
    service.update_todo(alice, onboard.id, {"status": "in-progress"})

    service.update_default_task(admin, onboard.id, {"text": "Onboarding checklist"})

    assert service.get_todo(alice, onboard.id).text == "Onboarding checklist"
    assert service.get_todo(alice, onboard.id).status is TodoStatus.IN_PROGRESS
    assert service.get_todo(bob, onboard.id).text == "Onboarding checklist"


def test_users_cannot_edit_or_delete_default_tasks(service, admin, alice):
    onboard = service.create_default_task(admin, "Onboard")
    with pytest.raises(ForbiddenError):
        service.update_todo(alice, onboard.id, {"text": "mine now"})
    with pytest.raises(ForbiddenError):
        service.update_todo(alice, onboard.id, {"shared_with_admin": True})
    with pytest.raises(ForbiddenError):
        service.delete_todo(alice, onboard.id)
    with pytest.raises(ForbiddenError):
        service.update_default_task(admin, onboard.id, {"status": "done"})


def test_admin_can_unhide_default_task_for_user(service, admin, alice):
    onboard = service.create_default_task(admin, "Onboard")
    service.update_todo(alice, onboard.id, {"hidden_from_user": True})

    assert service.list_user_todos(admin, alice.user_id) == []
    with pytest.raises(NotFoundError):
        service.get_todo(alice, onboard.id)

    restored = service.update_user_todo(
        admin, alice.user_id, onboard.id, {"hidden_from_user": False}
    )
    assert restored.hidden_from_user is False
    assert texts(service.list_todos(alice)) == ["Onboard"]


def test_deleting_default_task_cascades(service, admin, alice, bob):
    service.create_todo(alice, "a1")
    onboard = service.create_default_task(admin, "Onboard")
    service.create_todo(alice, "a2")
    keep = service.create_default_task(admin, "Keep")
    service.update_todo(alice, onboard.id, {"status": "done"})
    service.update_todo(bob, onboard.id, {"hidden_from_user": True})
    service.list_user_todos(admin, alice.user_id)

    service.delete_default_task(admin, onboard.id)

    alice_items = service.list_todos(alice)
    assert texts(alice_items) == ["a1", "a2", "Keep"]
    assert_dense(alice_items)
    assert texts(service.list_todos(bob)) == ["Keep"]
    assert_dense(service.list_user_todos(admin, alice.user_id))
    assert [item.id for item in service.list_default_tasks(admin)] == [keep.id]

    with service.repository.transaction() as conn:
        assert service.repository.get_override(conn, onboard.id, alice.user_id) is None
        assert service.repository.get_override(conn, onboard.id, bob.user_id) is None

    with pytest.raises(NotFoundError):
        service.update_todo(bob, onboard.id, {"hidden_from_user": False})
    with pytest.raises(NotFoundError):
        service.update_user_todo(
            admin, alice.user_id, onboard.id, {"hidden_from_user": True}
        )


def test_exclude_admin_todos_filters_default_tasks(service, admin, alice):
    service.create_todo(alice, "mine")
    service.create_default_task(admin, "Onboard")

    assert texts(service.list_todos(alice, exclude_admin_todos=True)) == ["mine"]
    assert texts(service.list_todos(alice)) == ["mine", "Onboard"]


def test_catalog_reorder(service, admin):
    first = service.create_default_task(admin, "first")
    second = service.create_default_task(admin, "second")
    assert [first.position, second.position] == [0, 1]

    service.reorder_default_tasks(admin, [second.id, first.id])
    assert texts(service.list_default_tasks(admin)) == ["second", "first"]

    with pytest.raises(ValidationError):
        service.reorder_default_tasks(admin, [second.id])
