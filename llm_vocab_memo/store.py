import os
import threading
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import NotFoundError, ValidationError
from .structured import HistoryRecord, VocabularyEntry

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

EDITABLE_FIELDS = ("term", "meaning", "note")


class Persistence(Protocol):
    def load_entries(self) -> List[VocabularyEntry]: ...
    def save_entries(self, entries: Sequence[VocabularyEntry]) -> None: ...
    def load_history(self) -> List[HistoryRecord]: ...
    def save_history(self, records: Sequence[HistoryRecord]) -> None: ...
    def save_all(self, entries: Sequence[VocabularyEntry], records: Sequence[HistoryRecord]) -> None: ...


class VocabStore:
    """Owns the active vocabulary list and the append-only history.

    Active entries are kept most-recent-first. History keeps one record per
    creation, in creation order, and survives deletion from the active list.
    Every mutation is written through to the persistence collaborator before
    the method returns. The in-memory state only changes once the save has
    succeeded.
    """

    def __init__(self, persistence: Persistence) -> None:
        self._persistence = persistence
        self._lock = threading.RLock()
        self._entries: List[VocabularyEntry] = list(persistence.load_entries())
        loaded_history = list(persistence.load_history())
        self._history: List[HistoryRecord] = _backfill_history(self._entries, loaded_history)
        # backfilled records are written with the next mutation
        self._history_unsaved = len(self._history) != len(loaded_history)
        # ids are never reused, even after deletion
        self._known_ids = {e.id for e in self._entries} | {r.id for r in self._history}
        if DEBUG_MODE:
            print(f"📚 Loaded {len(self._entries)} entries, {len(self._history)} history records")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(self) -> List[VocabularyEntry]:
        with self._lock:
            return [e.copy() for e in self._entries]

    def get(self, entry_id: str) -> VocabularyEntry:
        with self._lock:
            return self._find(entry_id).copy()

    def history(self) -> List[HistoryRecord]:
        with self._lock:
            return [r.copy() for r in self._history]

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, entry_id: object) -> bool:
        with self._lock:
            return any(e.id == entry_id for e in self._entries)

    def quiz_candidates(self) -> List[VocabularyEntry]:
        """Entries that can be asked in a quiz (they have a meaning)."""
        return [e for e in self.list() if e.meaning.strip()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(self, term: str, meaning: str = "", note: str = "") -> str:
        term = _text("term", term)
        if not term:
            raise ValidationError("term must not be empty")
        meaning = _text("meaning", meaning)
        note = _text("note", note)
        with self._lock:
            entry = VocabularyEntry(id=self._new_id(), term=term, meaning=meaning, note=note)
            self._commit([entry] + self._entries,
                         self._history + [HistoryRecord.from_entry(entry)])
            self._known_ids.add(entry.id)
        print(f"✅ Added '{term}'")
        return entry.id

    def update(self, entry_id: str, **fields: Any) -> None:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"cannot update field(s): {', '.join(sorted(unknown))}")
        cleaned: Dict[str, str] = {k: _text(k, v) for k, v in fields.items()}
        if "term" in cleaned and not cleaned["term"]:
            raise ValidationError("term must not be empty")
        with self._lock:
            entry = replace(self._find(entry_id), **cleaned)
            history: Optional[List[HistoryRecord]] = None
            if "meaning" in cleaned and self._find_history(entry_id) is not None:
                history = [replace(r, meaning=cleaned["meaning"]) if r.id == entry_id else r
                           for r in self._history]
            self._commit(self._replaced(entry), history)

    def delete(self, entry_id: str) -> None:
        with self._lock:
            entry = self._find(entry_id)
            self._commit([e for e in self._entries if e.id != entry_id])
        print(f"🗑️ Deleted '{entry.term}'")

    def set_example(self, entry_id: str, text: str) -> None:
        with self._lock:
            entry = replace(self._find(entry_id), example=text)
            self._commit(self._replaced(entry))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _find(self, entry_id: str) -> VocabularyEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundError(entry_id)

    def _find_history(self, entry_id: str) -> Optional[HistoryRecord]:
        for record in self._history:
            if record.id == entry_id:
                return record
        return None

    def _replaced(self, entry: VocabularyEntry) -> List[VocabularyEntry]:
        return [entry if e.id == entry.id else e for e in self._entries]

    def _new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in self._known_ids:
                return candidate

    def _commit(self, entries: List[VocabularyEntry],
                history: Optional[List[HistoryRecord]] = None) -> None:
        """Save the new state, then make it current. A failed save changes nothing."""
        if history is None and self._history_unsaved:
            history = self._history
        if history is None:
            self._persistence.save_entries(entries)
        else:
            self._persistence.save_all(entries, history)
            self._history = history
            self._history_unsaved = False
        self._entries = entries


def _text(name: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip()


def _backfill_history(entries: List[VocabularyEntry],
                      history: List[HistoryRecord]) -> List[HistoryRecord]:
    # Entries imported from the browser notebook may have no history yet
    recorded = {r.id for r in history}
    missing = [HistoryRecord.from_entry(e) for e in reversed(entries) if e.id not in recorded]
    return history + missing
