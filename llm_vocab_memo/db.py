from __future__ import annotations
from sqlalchemy import create_engine, Integer, String, DateTime, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
import datetime
import json
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from .structured import VocabularyEntry, HistoryRecord

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"


class Base(DeclarativeBase):
    pass
DB_PATH: str = os.environ.get("LLM_VOCAB_DB", "vocab_memo.db")
# generation tasks write from worker threads
engine = create_engine(f"sqlite:///{DB_PATH}", connect_args={"check_same_thread": False})
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class EntryRow(Base):
    __tablename__ = "vocab_entries"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = most recent
    term: Mapped[str] = mapped_column(String, nullable=False)
    meaning: Mapped[str] = mapped_column(Text, default="")
    note: Mapped[str] = mapped_column(Text, default="")
    example: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)


class HistoryRow(Base):
    __tablename__ = "vocab_history"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # append order
    term: Mapped[str] = mapped_column(String, nullable=False)
    meaning: Mapped[str] = mapped_column(Text, default="")
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()
    return {"vocab_entries", "vocab_history"}.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite drops tzinfo on the way back out
    return value if value.tzinfo else value.replace(tzinfo=datetime.UTC)


T = TypeVar("T")


def _load_all(loader: Callable[[], List[T]], what: str) -> List[T]:
    """Run a loader, treating unreadable or malformed data as no data."""
    try:
        return loader()
    except (SQLAlchemyError, ValueError, KeyError, TypeError, AttributeError,
            OverflowError, OSError) as e:
        print(f"⚠️ Stored {what} are unreadable, starting empty: {e}")
        return []


class SqlPersistence:
    """Persistence collaborator backed by the SQLAlchemy tables above.

    Every save replaces the table contents inside one transaction, so the
    database always mirrors the last saved sequence.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory or get_session

    def load_entries(self) -> List[VocabularyEntry]:
        def load() -> List[VocabularyEntry]:
            session = self._session_factory()
            try:
                rows = session.query(EntryRow).order_by(EntryRow.position).all()
                entries = []
                for row in rows:
                    if not (row.term or "").strip():
                        raise ValueError(f"entry {row.id} has an empty term")
                    entries.append(VocabularyEntry(
                        id=row.id,
                        term=row.term,
                        meaning=row.meaning or "",
                        note=row.note or "",
                        example=row.example,
                        created_at=_as_utc(row.created_at),
                    ))
                return entries
            finally:
                session.close()
        return _load_all(load, "entries")

    def load_history(self) -> List[HistoryRecord]:
        def load() -> List[HistoryRecord]:
            session = self._session_factory()
            try:
                rows = session.query(HistoryRow).order_by(HistoryRow.position).all()
                records = []
                for row in rows:
                    if not (row.term or "").strip():
                        raise ValueError(f"history record {row.id} has an empty term")
                    records.append(HistoryRecord(
                        id=row.id,
                        term=row.term,
                        meaning=row.meaning or "",
                        note=row.note or "",
                        created_at=_as_utc(row.created_at),
                    ))
                return records
            finally:
                session.close()
        return _load_all(load, "history records")

    def save_entries(self, entries: Sequence[VocabularyEntry]) -> None:
        self._save(lambda session: self._replace_entries(session, entries))
        if DEBUG_MODE:
            print(f"💾 Saved {len(entries)} entries")

    def save_history(self, records: Sequence[HistoryRecord]) -> None:
        self._save(lambda session: self._replace_history(session, records))

    def save_all(self, entries: Sequence[VocabularyEntry], records: Sequence[HistoryRecord]) -> None:
        """Replace both tables in a single transaction."""
        def replace_both(session: Session) -> None:
            self._replace_entries(session, entries)
            self._replace_history(session, records)
        self._save(replace_both)
        if DEBUG_MODE:
            print(f"💾 Saved {len(entries)} entries, {len(records)} history records")

    def _save(self, apply: Callable[[Session], None]) -> None:
        session = self._session_factory()
        try:
            apply(session)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _replace_entries(session: Session, entries: Sequence[VocabularyEntry]) -> None:
        session.query(EntryRow).delete()
        for position, entry in enumerate(entries):
            session.add(EntryRow(
                id=entry.id,
                position=position,
                term=entry.term,
                meaning=entry.meaning,
                note=entry.note,
                example=entry.example,
                created_at=entry.created_at,
            ))

    @staticmethod
    def _replace_history(session: Session, records: Sequence[HistoryRecord]) -> None:
        session.query(HistoryRow).delete()
        for position, record in enumerate(records):
            session.add(HistoryRow(
                id=record.id,
                position=position,
                term=record.term,
                meaning=record.meaning,
                note=record.note,
                created_at=record.created_at,
            ))


class JsonFilePersistence:
    """Persistence collaborator storing both collections in one JSON file.

    Layout mirrors the browser notebook's localStorage: an object with the
    ``vocab-items`` and ``vocab-history`` keys.
    """

    ENTRIES_KEY = "vocab-items"
    HISTORY_KEY = "vocab-history"

    def __init__(self, path: str) -> None:
        self.path = path

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError, RecursionError) as e:
            print(f"⚠️ Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, collections: Dict[str, List[Dict[str, Any]]]) -> None:
        data = self._read()
        data.update(collections)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def _load_list(self, key: str, build: Callable[[Dict[str, Any]], T], what: str) -> List[T]:
        def load() -> List[T]:
            raw = self._read().get(key, [])
            if not isinstance(raw, list):
                raise ValueError(f"'{key}' is not a list")
            return [build(item) for item in raw]
        return _load_all(load, what)

    def load_entries(self) -> List[VocabularyEntry]:
        return self._load_list(self.ENTRIES_KEY, VocabularyEntry.from_dict, "entries")

    def save_entries(self, entries: Sequence[VocabularyEntry]) -> None:
        self._write({self.ENTRIES_KEY: [e.to_dict() for e in entries]})

    def load_history(self) -> List[HistoryRecord]:
        return self._load_list(self.HISTORY_KEY, HistoryRecord.from_dict, "history records")

    def save_history(self, records: Sequence[HistoryRecord]) -> None:
        self._write({self.HISTORY_KEY: [r.to_dict() for r in records]})

    def save_all(self, entries: Sequence[VocabularyEntry], records: Sequence[HistoryRecord]) -> None:
        self._write({
            self.ENTRIES_KEY: [e.to_dict() for e in entries],
            self.HISTORY_KEY: [r.to_dict() for r in records],
        })


__all__ = [
    "Base", "EntryRow", "HistoryRow",
    "is_db_initialized", "init_db", "get_session",
    "SqlPersistence", "JsonFilePersistence",
]
