import logging
from typing import Dict, Iterable, List, Literal, Optional, Sequence
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session
from dailyquiz.core.config import FETCH_CHUNK_SIZE, SUBJECTS
from dailyquiz.core.errors import QuestionNotFound, UnknownSubject
from dailyquiz.models.domain import QuizQuestion, normalize_timestamp
from dailyquiz.models.orm import Question

logger = logging.getLogger(__name__)

class QuestionInput(BaseModel):
    stem: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(ge=0, le=3)
    explanation: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    subject: str
    difficulty: Literal[1, 2, 3]
    tags: List[str] = Field(default_factory=list)
    active: bool = True

    @field_validator("subject")
    @classmethod
    def known_subject(cls, value: str) -> str:
        if value not in SUBJECTS:
            raise ValueError(f"subject must be one of {', '.join(SUBJECTS)}")
        return value

class QuestionUpdate(BaseModel):
    stem: Optional[str] = Field(default=None, min_length=1)
    options: Optional[List[str]] = Field(default=None, min_length=4, max_length=4)
    correct_index: Optional[int] = Field(default=None, ge=0, le=3)
    explanation: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[Literal[1, 2, 3]] = None
    tags: Optional[List[str]] = None
    active: Optional[bool] = None

def ensure_subject(subject: str) -> str:
    if subject not in SUBJECTS:
        raise UnknownSubject(subject)
    return subject

def chunked(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]

class QuestionRepository:
    """Owns question rows; hands out QuizQuestion records only."""

    def __init__(self, db: Session, chunk_size: int = FETCH_CHUNK_SIZE):
        self.db = db
        self.chunk_size = chunk_size

    def fetch_active(self, subject: Optional[str] = None) -> List[QuizQuestion]:
        stmt = select(Question).where(Question.active.is_(True))
        if subject is not None:
            stmt = stmt.where(Question.subject == subject)
        return [QuizQuestion.from_row(r) for r in self.db.scalars(stmt).all()]

    def fetch_by_ids(self, ids: Sequence[str]) -> List[QuizQuestion]:
        """Questions in input order; ids without a row are dropped silently."""
        if not ids:
            return []
        found: Dict[str, QuizQuestion] = {}
        unique_ids = list(dict.fromkeys(ids))
        for chunk in chunked(unique_ids, self.chunk_size):
            for row in self.db.scalars(select(Question).where(Question.id.in_(chunk))).all():
                found[row.id] = QuizQuestion.from_row(row)
        return [found[i] for i in ids if i in found]

    def fetch_by_id(self, question_id: str) -> Optional[QuizQuestion]:
        row = self.db.get(Question, question_id)
        return QuizQuestion.from_row(row) if row else None

    def fetch_all(self) -> List[QuizQuestion]:
        questions = [QuizQuestion.from_row(r) for r in self.db.scalars(select(Question)).all()]
        questions.sort(key=lambda q: q.created_at.timestamp() if q.created_at else 0.0, reverse=True)
        return questions

    def _row_from_input(self, payload: QuestionInput, now) -> Question:
        return Question(
            stem=payload.stem, options=list(payload.options), correct_index=payload.correct_index,
            explanation=payload.explanation, topic=payload.topic, subject=payload.subject,
            difficulty=payload.difficulty, tags=list(payload.tags), active=payload.active,
            created_at=normalize_timestamp(now),
        )

    def add(self, payload: QuestionInput, now) -> str:
        row = self._row_from_input(payload, now)
        self.db.add(row)
        self.db.commit()
        logger.info(f"Added question {row.id} ({row.subject}/{row.topic}, difficulty {row.difficulty})")
        return row.id

    def bulk_import(self, payloads: Sequence[QuestionInput], now) -> int:
        rows = [self._row_from_input(p, now) for p in payloads]
        self.db.add_all(rows)
        self.db.commit()
        logger.info(f"Imported {len(rows)} questions")
        return len(rows)

    def update(self, question_id: str, changes: QuestionUpdate) -> QuizQuestion:
        row = self.db.get(Question, question_id)
        if row is None:
            raise QuestionNotFound(question_id)
        for key, value in changes.model_dump(exclude_unset=True).items():
            setattr(row, key, value)
        self.db.commit()
        return QuizQuestion.from_row(row)

    def soft_delete(self, question_id: str) -> None:
        row = self.db.get(Question, question_id)
        if row is None:
            raise QuestionNotFound(question_id)
        row.active = False
        self.db.commit()
        logger.info(f"Deactivated question {question_id}")
