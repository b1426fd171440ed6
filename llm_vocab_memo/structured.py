import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass
class VocabularyEntry:
    id: str
    term: str
    meaning: str = ""
    note: str = ""
    example: Optional[str] = None
    created_at: datetime.datetime = field(default_factory=_utcnow)

    def copy(self) -> "VocabularyEntry":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "term": self.term,
            "meaning": self.meaning,
            "note": self.note,
            "example": self.example,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabularyEntry":
        """Build an entry from stored data. Raises on malformed input.

        Accepts the browser layout too (`word`, `createdAt`).
        """
        term = str(data["term"] if "term" in data else data["word"]).strip()
        if not term:
            raise ValueError("stored entry has an empty term")
        example = data.get("example")
        return cls(
            id=str(data["id"]),
            term=term,
            meaning=str(data.get("meaning") or ""),
            note=str(data.get("note") or ""),
            example=str(example) if example else None,
            created_at=_parse_timestamp(data.get("created_at", data.get("createdAt"))),
        )


@dataclass
class HistoryRecord:
    id: str
    term: str
    meaning: str
    note: str
    created_at: datetime.datetime

    @classmethod
    def from_entry(cls, entry: VocabularyEntry) -> "HistoryRecord":
        return cls(
            id=entry.id,
            term=entry.term,
            meaning=entry.meaning,
            note=entry.note,
            created_at=entry.created_at,
        )

    def copy(self) -> "HistoryRecord":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "term": self.term,
            "meaning": self.meaning,
            "note": self.note,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        term = str(data["term"]).strip()
        if not term:
            raise ValueError("stored history record has an empty term")
        return cls(
            id=str(data["id"]),
            term=term,
            meaning=str(data.get("meaning") or ""),
            note=str(data.get("note") or ""),
            created_at=_parse_timestamp(data.get("created_at")),
        )


def _parse_timestamp(value: Any) -> datetime.datetime:
    # The browser version stored Date.now() milliseconds; newer data is ISO 8601.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value / 1000, tz=datetime.UTC)
    if isinstance(value, str):
        parsed = datetime.datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        return parsed
    if isinstance(value, datetime.datetime):
        return value if value.tzinfo else value.replace(tzinfo=datetime.UTC)
    raise ValueError(f"unrecognised timestamp: {value!r}")
