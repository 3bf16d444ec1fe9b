"""Tests for Store lifecycle operations and hook sequencing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, ClassVar

import pytest
from pydantic import BaseModel, PrivateAttr

from bond import Column, Model
from bond.errors import MetadataError, NoMoreRowsError, ValidationError, ZeroItemIDError
from bond.session import Session
from bond.store import Store
from tests.entities import AfterCreateOnly, Account, HookFailure, Note, TracedAccount


class ClaimsPersisted(Model):
    """Reports itself as stored whatever its id holds."""

    __collection__ = "accounts"

    id: Annotated[int, Column(pk=True, omitempty=True)] = 0
    name: str = ""
    _calls: list[str] = PrivateAttr(default_factory=list)

    def is_new_record(self) -> bool:
        return False

    def before_delete(self, session: Session) -> None:
        self._calls.append("before_delete")


class ClaimsNew(Model):
    """Reports itself as new whatever its id holds."""

    __collection__ = "accounts"

    id: Annotated[int, Column(pk=True, omitempty=True)] = 0
    name: str = ""

    def is_new_record(self) -> bool:
        return True


class FrozenAccount(BaseModel):
    model_config = {"frozen": True}

    __collection__: ClassVar[str] = "accounts"

    id: Annotated[int, Column(pk=True, omitempty=True)] = 0
    name: str = ""


@dataclass(frozen=True)
class FrozenNote:
    id: Annotated[int, Column("note_id", pk=True, omitempty=True)] = 0
    body: str = ""

    def collection_name(self) -> str:
        return "notes"


@pytest.fixture
def accounts(session: Session) -> Store:
    return session.store("accounts")


def _count(store: Store) -> int:
    return store.find().count()


class TestAppend:
    def test_returns_generated_id(self, accounts: Store) -> None:
        first = accounts.append(Account(name="Apple"))
        second = accounts.append(Account(name="Google"))
        assert first > 0
        assert second > first
        assert _count(accounts) == 2

    def test_does_not_write_id_back(self, accounts: Store) -> None:
        acct = Account(name="Apple")
        accounts.append(acct)
        assert acct.id == 0

    def test_accepts_mappings(self, accounts: Store) -> None:
        item_id = accounts.append({"name": "Raw"})
        row = accounts.find({"id": item_id}).one()
        assert row["name"] == "Raw"

    def test_hook_order(self, accounts: Store) -> None:
        acct = TracedAccount(name="Traced")
        accounts.append(acct)
        # append leaves the id unset, so after_create still sees zero
        assert acct.calls == ["validate", "before_create", "after_create", "id=0"]

    def test_validation_failure_stops_before_write(self, accounts: Store) -> None:
        acct = TracedAccount()
        with pytest.raises(ValidationError, match="name is required"):
            accounts.append(acct)
        assert acct.calls == ["validate"]
        assert _count(accounts) == 0

    def test_before_create_failure_stops_before_write(self, accounts: Store) -> None:
        acct = TracedAccount(name="x").fail_on("before_create")
        with pytest.raises(HookFailure):
            accounts.append(acct)
        assert acct.calls == ["validate", "before_create"]
        assert _count(accounts) == 0

    def test_after_create_failure_keeps_written_row(self, accounts: Store) -> None:
        acct = TracedAccount(name="x").fail_on("after_create")
        with pytest.raises(HookFailure):
            accounts.append(acct)
        assert _count(accounts) == 1


class TestInsert:
    def test_writes_id_back(self, accounts: Store) -> None:
        acct = Account(name="Pressly")
        accounts.insert(acct)
        assert acct.id > 0
        stored = accounts.find({"id": acct.id}).one(Account)
        assert stored.name == "Pressly"

    def test_id_assigned_before_after_create(self, accounts: Store) -> None:
        acct = TracedAccount(name="Traced")
        accounts.insert(acct)
        assert acct.calls == ["before_create", "after_create", f"id={acct.id}"]
        assert acct.id > 0

    def test_insert_skips_validate(self, accounts: Store) -> None:
        acct = TracedAccount()
        accounts.insert(acct)
        assert "validate" not in acct.calls

    def test_before_create_failure_skips_write_and_after_hook(self, accounts: Store) -> None:
        acct = TracedAccount(name="x").fail_on("before_create")
        with pytest.raises(HookFailure):
            accounts.insert(acct)
        assert acct.calls == ["before_create"]
        assert acct.id == 0
        assert _count(accounts) == 0

    def test_after_hook_without_before_hook(self, accounts: Store) -> None:
        item = AfterCreateOnly(name="solo")
        accounts.insert(item)
        assert item._seen == [item.id]
        assert item.id > 0

    def test_dataclass_entity(self, session: Session) -> None:
        notes = session.store("notes")
        note = Note(body="remember")
        notes.insert(note)
        assert note.id > 0
        stored = notes.find({"note_id": note.id}).one(Note)
        assert stored.body == "remember"

    def test_type_without_primary_key(self, accounts: Store) -> None:
        class Keyless(BaseModel):
            name: str = ""

        with pytest.raises(MetadataError):
            accounts.insert(Keyless(name="x"))
        assert _count(accounts) == 0

    def test_frozen_model_rejected_before_write(self, accounts: Store) -> None:
        with pytest.raises(MetadataError, match="frozen"):
            accounts.insert(FrozenAccount(name="ice"))
        assert _count(accounts) == 0

    def test_frozen_dataclass_rejected_before_write(self, session: Session) -> None:
        notes = session.store("notes")
        with pytest.raises(MetadataError, match="frozen"):
            notes.save(FrozenNote(body="ice"))
        assert _count(notes) == 0

    def test_frozen_model_can_still_append(self, accounts: Store) -> None:
        item_id = accounts.append(FrozenAccount(name="ice"))
        assert accounts.find({"id": item_id}).one(FrozenAccount).name == "ice"


class TestSave:
    def test_zero_id_inserts(self, accounts: Store) -> None:
        acct = Account(name="new")
        accounts.save(acct)
        assert acct.id != 0
        assert _count(accounts) == 1

    def test_nonzero_id_updates(self, accounts: Store) -> None:
        acct = Account(name="before")
        accounts.save(acct)
        acct.name = "after"
        accounts.save(acct)
        assert _count(accounts) == 1
        assert accounts.find({"id": acct.id}).one(Account).name == "after"

    def test_runs_validate_then_create_hooks(self, accounts: Store) -> None:
        acct = TracedAccount(name="t")
        accounts.save(acct)
        assert acct.calls[:3] == ["validate", "before_create", "after_create"]

    def test_runs_validate_then_update_hooks(self, accounts: Store) -> None:
        acct = TracedAccount(name="t")
        accounts.save(acct)
        acct.calls.clear()
        accounts.save(acct)
        assert acct.calls == ["validate", "before_update", "after_update"]

    def test_validation_failure_writes_nothing(self, accounts: Store) -> None:
        with pytest.raises(ValidationError):
            accounts.save(TracedAccount())
        assert _count(accounts) == 0

    def test_unsupported_value(self, accounts: Store) -> None:
        with pytest.raises(MetadataError):
            accounts.save({"name": "dict"})

    def test_zero_id_inserts_despite_is_new_record_override(self, accounts: Store) -> None:
        item = ClaimsPersisted(name="never-new")
        accounts.save(item)
        assert item.id > 0
        assert _count(accounts) == 1


class TestUpdate:
    def test_rewrites_record(self, accounts: Store) -> None:
        acct = Account(name="Pressly")
        accounts.insert(acct)
        acct.disabled = True
        accounts.update(acct)
        stored = accounts.find({"id": acct.id}).one(Account)
        assert stored.disabled is True

    def test_only_matching_record_changes(self, accounts: Store) -> None:
        a = Account(name="a")
        b = Account(name="b")
        accounts.insert(a)
        accounts.insert(b)
        a.name = "a2"
        accounts.update(a)
        assert accounts.find({"id": b.id}).one(Account).name == "b"

    def test_before_update_failure_leaves_record(self, accounts: Store) -> None:
        acct = TracedAccount(name="orig")
        accounts.insert(acct)
        acct.name = "changed"
        acct.fail_on("before_update")
        with pytest.raises(HookFailure):
            accounts.update(acct)
        assert accounts.find({"id": acct.id}).one(Account).name == "orig"
        assert "after_update" not in acct.calls

    def test_after_update_failure_after_write(self, accounts: Store) -> None:
        acct = TracedAccount(name="orig")
        accounts.insert(acct)
        acct.name = "changed"
        acct.fail_on("after_update")
        with pytest.raises(HookFailure):
            accounts.update(acct)
        assert accounts.find({"id": acct.id}).one(Account).name == "changed"


class TestDelete:
    def test_removes_record(self, accounts: Store) -> None:
        acct = Account(name="gone")
        accounts.insert(acct)
        accounts.delete(acct)
        assert _count(accounts) == 0
        with pytest.raises(NoMoreRowsError):
            accounts.find({"id": acct.id}).one()

    def test_zero_id_raises_without_touching_storage(self, accounts: Store) -> None:
        accounts.insert(Account(name="X"))
        acct = TracedAccount(name="X")
        with pytest.raises(ZeroItemIDError):
            accounts.delete(acct)
        assert acct.calls == []
        assert _count(accounts) == 1

    def test_zero_id_never_reaches_collection(
        self, accounts: Store, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(*args: Any) -> None:
            raise AssertionError("storage touched")

        monkeypatch.setattr(Session, "collection", boom)
        with pytest.raises(ZeroItemIDError):
            accounts.delete(Account(name="X"))

    def test_hook_order(self, accounts: Store) -> None:
        acct = TracedAccount(name="t")
        accounts.insert(acct)
        acct.calls.clear()
        accounts.delete(acct)
        assert acct.calls == ["before_delete", "after_delete"]

    def test_before_delete_failure_keeps_record(self, accounts: Store) -> None:
        acct = TracedAccount(name="t")
        accounts.insert(acct)
        acct.fail_on("before_delete")
        with pytest.raises(HookFailure):
            accounts.delete(acct)
        assert _count(accounts) == 1
        assert "after_delete" not in acct.calls

    def test_zero_id_raises_despite_is_new_record_override(self, accounts: Store) -> None:
        accounts.insert(Account(name="X"))
        item = ClaimsPersisted(name="X")
        with pytest.raises(ZeroItemIDError):
            accounts.delete(item)
        assert item._calls == []
        assert _count(accounts) == 1

    def test_stored_row_deletable_despite_is_new_record_override(self, accounts: Store) -> None:
        item = ClaimsNew(name="stored")
        accounts.insert(item)
        assert item.id > 0
        accounts.delete(item)
        assert _count(accounts) == 0

    def test_only_matching_record_removed(self, accounts: Store) -> None:
        keep = Account(name="keep")
        drop = Account(name="drop")
        accounts.insert(keep)
        accounts.insert(drop)
        accounts.delete(drop)
        assert [a.name for a in accounts.find().all(Account)] == ["keep"]


class TestStoreSurface:
    def test_name_and_session(self, session: Session, accounts: Store) -> None:
        assert accounts.name == "accounts"
        assert accounts.session is session
        assert accounts.collection.name == "accounts"

    def test_truncate_and_exists(self, accounts: Store) -> None:
        accounts.append(Account(name="a"))
        assert accounts.exists()
        accounts.truncate()
        assert _count(accounts) == 0

    def test_subclass_queries(self, session: Session) -> None:
        class AccountStore(Store):
            def active(self) -> list[Account]:
                return self.find({"disabled": False}).order_by("name").all(Account)

        store = session.store("accounts", AccountStore)
        store.save(Account(name="b"))
        store.save(Account(name="a"))
        store.save(Account(name="off", disabled=True))
        assert [a.name for a in store.active()] == ["a", "b"]
