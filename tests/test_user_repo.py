# tests/test_user_repo.py

from __future__ import annotations

import pytest

from db.errors import ConstraintViolationError, UserNotFoundError
from storage import Storage


def test_create_and_fetch_user(storage: Storage) -> None:
    user_id = storage.users.create("alice@example.com", "hash-a")

    by_id = storage.users.get_by_id(user_id)
    by_email = storage.users.get_by_email("alice@example.com")
    assert by_id == by_email
    assert by_id.email == "alice@example.com"
    assert by_id.password_hash == "hash-a"
    assert by_id.created_at is not None


def test_password_hash_is_hidden_from_repr(storage: Storage) -> None:
    user = storage.users.get_by_id(storage.users.create("bob@example.com", "secret-hash"))
    assert "secret-hash" not in repr(user)


def test_unknown_user_is_not_found(storage: Storage) -> None:
    with pytest.raises(UserNotFoundError):
        storage.users.get_by_id(424242)
    with pytest.raises(UserNotFoundError):
        storage.users.get_by_email("nobody@example.com")
    with pytest.raises(UserNotFoundError):
        storage.users.delete(424242)


def test_email_is_unique(storage: Storage) -> None:
    email = "carol@example.com"
    assert storage.users.email_exists(email) is False

    storage.users.create(email, "hash-1")
    assert storage.users.email_exists(email) is True

    with pytest.raises(ConstraintViolationError):
        storage.users.create(email, "hash-2")

    with storage.manager.connection() as conn:
        count = conn.execute("SELECT COUNT(*) FROM users WHERE email = ?", (email,)).fetchone()[0]
    assert count == 1
    assert storage.users.get_by_email(email).password_hash == "hash-1"


def test_ids_are_assigned_by_the_database(storage: Storage) -> None:
    first = storage.users.create("d1@example.com", "h")
    second = storage.users.create("d2@example.com", "h")
    assert second == first + 1


def test_delete_user(storage: Storage) -> None:
    user_id = storage.users.create("erin@example.com", "h")
    storage.users.delete(user_id)
    assert storage.users.email_exists("erin@example.com") is False
    with pytest.raises(UserNotFoundError):
        storage.users.get_by_id(user_id)
