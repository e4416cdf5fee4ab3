"""
Typed records the services pass around instead of ORM rows.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# Epoch values above this are taken to be milliseconds.
_MS_THRESHOLD = 10 ** 11


def normalize_timestamp(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """Coerce a stored timestamp into an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), dates, epoch seconds or
    milliseconds and ISO-8601 strings. Returns ``default`` for None.
    """
    if value is None:
        return default
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise TypeError("Booleans are not timestamps")
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) >= _MS_THRESHOLD else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return normalize_timestamp(datetime.fromisoformat(text))
    raise TypeError(f"Unsupported timestamp value: {value!r}")


@dataclass(frozen=True)
class QuizQuestion:
    id: str
    stem: str
    options: Tuple[str, ...]
    correct_index: int
    explanation: str
    topic: str
    subject: str
    difficulty: int
    active: bool = True
    created_at: Optional[datetime] = None
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_row(cls, row) -> "QuizQuestion":
        return cls(
            id=row.id,
            stem=row.stem,
            options=tuple(row.options or ()),
            correct_index=int(row.correct_index),
            explanation=row.explanation or "",
            topic=row.topic,
            subject=row.subject,
            difficulty=int(row.difficulty),
            active=bool(row.active),
            created_at=normalize_timestamp(row.created_at),
            tags=tuple(row.tags or ()),
        )

    def public_view(self) -> Dict[str, Any]:
        # quiz-taker view: no answer key
        return {"id": self.id, "stem": self.stem, "options": list(self.options), "topic": self.topic}


@dataclass
class Assignment:
    id: str
    date: str
    subject: str
    quiz_version: int
    generated_at: datetime
    question_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row, fallback_now: datetime) -> "Assignment":
        return cls(
            id=row.id,
            date=row.date,
            subject=row.subject,
            quiz_version=int(row.quiz_version or 1),
            generated_at=normalize_timestamp(row.generated_at, default=fallback_now),
            question_ids=list(row.question_ids or []),
        )
