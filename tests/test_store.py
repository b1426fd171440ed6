"""
Tests for the vocabulary store.
Runs against a transient SQLite database through SqlPersistence.
"""

import datetime
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from llm_vocab_memo import db
from llm_vocab_memo.errors import NotFoundError, ValidationError
from llm_vocab_memo.store import VocabStore


@pytest.fixture
def temp_db(tmp_path: Any) -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    path = tmp_path / "test_store.db"
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield


@pytest.fixture
def store(temp_db: Any) -> VocabStore:
    return VocabStore(db.SqlPersistence())


def test_create_prepends_and_records_history(store: VocabStore) -> None:
    first = store.create("apple", "りんご")
    second = store.create("dog", "犬", "pet")

    entries = store.list()
    assert [e.id for e in entries] == [second, first]
    assert entries[0].term == "dog"
    assert entries[0].note == "pet"
    assert entries[0].example is None
    assert len(store.history()) == 2
    assert store.count() == 2
    assert len(store) == 2


def test_create_trims_fields(store: VocabStore) -> None:
    entry_id = store.create("  compelling ", " 説得力のある ", " 類義語: persuasive ")
    entry = store.get(entry_id)
    assert entry.term == "compelling"
    assert entry.meaning == "説得力のある"
    assert entry.note == "類義語: persuasive"


@pytest.mark.parametrize("term", ["", "   ", "\n"])
def test_create_rejects_empty_term(store: VocabStore, term: str) -> None:
    with pytest.raises(ValidationError):
        store.create(term, "meaning")
    assert store.list() == []
    assert store.history() == []


def test_each_create_grows_history_by_one(store: VocabStore) -> None:
    for i, term in enumerate(["a", "b", "c"], start=1):
        store.create(term)
        assert len(store.history()) == i


def test_ids_are_unique(store: VocabStore) -> None:
    ids = {store.create(f"word{i}") for i in range(20)}
    assert len(ids) == 20


def test_delete_keeps_history(store: VocabStore) -> None:
    keep = store.create("apple", "りんご")
    gone = store.create("dog", "犬")

    store.delete(gone)

    assert [e.id for e in store.list()] == [keep]
    assert gone not in store
    history = store.history()
    assert len(history) == 2
    assert {r.id for r in history} == {keep, gone}


def test_delete_unknown_raises(store: VocabStore) -> None:
    with pytest.raises(NotFoundError):
        store.delete("missing")


def test_update_meaning_updates_history(store: VocabStore) -> None:
    entry_id = store.create("compelling", "")
    store.update(entry_id, meaning="説得力のある")

    assert store.get(entry_id).meaning == "説得力のある"
    record = next(r for r in store.history() if r.id == entry_id)
    assert record.meaning == "説得力のある"


def test_update_term_and_note_leave_history_term(store: VocabStore) -> None:
    entry_id = store.create("colour", "色")
    store.update(entry_id, term="color", note="US spelling")

    entry = store.get(entry_id)
    assert entry.term == "color"
    assert entry.note == "US spelling"
    record = next(r for r in store.history() if r.id == entry_id)
    assert record.term == "colour"
    assert record.note == ""


def test_update_validation(store: VocabStore) -> None:
    entry_id = store.create("apple")
    with pytest.raises(ValidationError):
        store.update(entry_id, term="  ")
    with pytest.raises(ValidationError):
        store.update(entry_id, example="nope")
    with pytest.raises(NotFoundError):
        store.update("missing", meaning="x")


def test_edit_after_delete_fails(store: VocabStore) -> None:
    entry_id = store.create("cat", "猫")
    editing = store.get(entry_id)
    store.delete(entry_id)
    with pytest.raises(NotFoundError):
        store.update(editing.id, meaning="ねこ")
    with pytest.raises(NotFoundError):
        store.set_example(editing.id, "EN: ... / JA: ...")


def test_set_example_overwrites(store: VocabStore) -> None:
    entry_id = store.create("dog", "犬")
    store.set_example(entry_id, "first")
    store.set_example(entry_id, "EN: The dog sleeps.\nJA: 犬が寝ている。")
    assert store.get(entry_id).example == "EN: The dog sleeps.\nJA: 犬が寝ている。"


def test_returned_entries_are_copies(store: VocabStore) -> None:
    entry_id = store.create("dog", "犬")
    store.list()[0].meaning = "changed"
    store.history()[0].meaning = "changed"
    assert store.get(entry_id).meaning == "犬"
    assert store.history()[0].meaning == "犬"


def test_state_survives_reload(store: VocabStore) -> None:
    a = store.create("apple", "りんご")
    b = store.create("dog", "犬")
    c = store.create("cat", "猫")
    store.delete(b)
    store.update(a, meaning="林檎")
    store.set_example(c, "EN: A cat.\nJA: 猫。")

    reloaded = VocabStore(db.SqlPersistence())
    assert [e.id for e in reloaded.list()] == [c, a]
    assert reloaded.get(c).example == "EN: A cat.\nJA: 猫。"
    assert reloaded.get(a).meaning == "林檎"
    assert [r.id for r in reloaded.history()] == [a, b, c]
    assert reloaded.history()[0].meaning == "林檎"
    assert reloaded.get(a).created_at == store.get(a).created_at
    assert reloaded.get(a).created_at.tzinfo is not None


def test_created_at_is_recent_utc(store: VocabStore) -> None:
    before = datetime.datetime.now(datetime.UTC)
    entry_id = store.create("apple")
    after = datetime.datetime.now(datetime.UTC)
    assert before <= store.get(entry_id).created_at <= after


def test_quiz_candidates_skip_empty_meaning(store: VocabStore) -> None:
    store.create("apple", "りんご")
    store.create("blank")
    assert [e.term for e in store.quiz_candidates()] == ["apple"]


class BrokenDisk:
    """Loads fine, fails every save once `broken` is set."""

    def __init__(self) -> None:
        self.inner = db.SqlPersistence()
        self.broken = False

    def load_entries(self) -> Any:
        return self.inner.load_entries()

    def load_history(self) -> Any:
        return self.inner.load_history()

    def _check(self) -> None:
        if self.broken:
            raise OSError("disk full")

    def save_entries(self, entries: Any) -> None:
        self._check()
        self.inner.save_entries(entries)

    def save_history(self, records: Any) -> None:
        self._check()
        self.inner.save_history(records)

    def save_all(self, entries: Any, records: Any) -> None:
        self._check()
        self.inner.save_all(entries, records)


def test_failed_save_leaves_store_unchanged(temp_db: Any) -> None:
    disk = BrokenDisk()
    store = VocabStore(disk)
    entry_id = store.create("cat", "猫", "pet")
    store.set_example(entry_id, "EN: A cat.")
    disk.broken = True

    with pytest.raises(OSError):
        store.create("apple", "りんご")
    with pytest.raises(OSError):
        store.update(entry_id, meaning="ねこ", note="changed")
    with pytest.raises(OSError):
        store.set_example(entry_id, "EN: Another cat.")
    with pytest.raises(OSError):
        store.delete(entry_id)

    assert [e.term for e in store.list()] == ["cat"]
    entry = store.get(entry_id)
    assert (entry.meaning, entry.note, entry.example) == ("猫", "pet", "EN: A cat.")
    assert [(r.term, r.meaning) for r in store.history()] == [("cat", "猫")]

    # memory still matches what was last saved
    reloaded = VocabStore(db.SqlPersistence())
    assert [e.to_dict() for e in reloaded.list()] == [e.to_dict() for e in store.list()]


@pytest.mark.parametrize("fields", [{"meaning": 5}, {"term": ["dog"]}, {"note": {"a": 1}}])
def test_update_rejects_non_text(store: VocabStore, fields: Any) -> None:
    entry_id = store.create("dog")
    with pytest.raises(ValidationError):
        store.update(entry_id, **fields)


def test_create_rejects_non_text(store: VocabStore) -> None:
    with pytest.raises(ValidationError):
        store.create(7)  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        store.create("dog", meaning=5)  # type: ignore[arg-type]
    assert store.count() == 0
