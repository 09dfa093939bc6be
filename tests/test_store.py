"""Tests for the SQLite key-value store and user accounts."""
import json

import pytest

from taskflow.accounts import AccountStore, AuthError, UsernameTaken
from taskflow.errors import ValidationError, StorageUnavailableError
from taskflow.store import SnapshotStore, board_key, user_key, COUNTER_KEY


class TestSnapshotStore:
    """Opaque blobs under string keys."""

    def test_get_missing(self, store):
        assert store.get("boardState_nobody") is None

    def test_set_overwrites(self, store):
        store.set(COUNTER_KEY, "3")
        store.set(COUNTER_KEY, "4")
        assert store.get(COUNTER_KEY) == "4"

    def test_remove(self, store):
        store.set(board_key("alice"), "{}")
        store.remove(board_key("alice"))
        assert store.get(board_key("alice")) is None
        store.remove(board_key("alice"))

    def test_data_survives_reopen(self, db_path):
        SnapshotStore(db_path).set("k", "v")
        assert SnapshotStore(db_path).get("k") == "v"

    def test_keys(self):
        assert board_key("alice") == "boardState_alice"
        assert user_key("alice") == "user_alice"

    def test_unusable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageUnavailableError):
            SnapshotStore(str(blocker / "sub" / "taskflow.db"))


class TestAccounts:
    """Registration and login rules."""

    def test_register_and_login(self, store):
        accounts = AccountStore(store)
        accounts.register("alice", "secret1")
        user = accounts.login("alice", "secret1")
        assert user.username == "alice"
        assert user.last_login

    def test_password_not_stored_in_clear(self, store):
        AccountStore(store).register("alice", "secret1")
        record = json.loads(store.get(user_key("alice")))
        assert "secret1" not in store.get(user_key("alice"))
        assert set(record) == {"salt", "hash"}

    @pytest.mark.parametrize("username,password,message", [
        ("", "secret1", "Please enter both username and password"),
        ("alice", "", "Please enter both username and password"),
        ("al", "secret1", "Username must be at least 3 characters long"),
        ("alice", "12345", "Password must be at least 6 characters long"),
    ])
    def test_register_validation(self, store, username, password, message):
        with pytest.raises(ValidationError, match=message):
            AccountStore(store).register(username, password)

    def test_duplicate_username(self, store):
        accounts = AccountStore(store)
        accounts.register("alice", "secret1")
        with pytest.raises(UsernameTaken):
            accounts.register("alice", "other12")

    def test_wrong_password(self, store):
        accounts = AccountStore(store)
        accounts.register("alice", "secret1")
        with pytest.raises(AuthError):
            accounts.login("alice", "wrong-password")

    def test_unknown_user(self, store):
        with pytest.raises(AuthError):
            AccountStore(store).login("ghost", "secret1")

    def test_corrupt_record(self, store):
        store.set(user_key("alice"), "not json")
        with pytest.raises(AuthError):
            AccountStore(store).login("alice", "secret1")
