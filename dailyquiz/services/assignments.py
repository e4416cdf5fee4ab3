"""
Daily assignment lifecycle: lazy exactly-once creation, retry versions and
tomorrow's preview.
"""
import logging
from typing import Collection, Dict, List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dailyquiz.core.clock import DayClock
from dailyquiz.core.database import upsert_insert
from dailyquiz.core.errors import StoreUnavailable
from dailyquiz.models.domain import Assignment, QuizQuestion
from dailyquiz.models.orm import DailyAssignment
from dailyquiz.services.history import UsageHistory, assignment_key
from dailyquiz.services.questions import QuestionRepository, ensure_subject
from dailyquiz.services.selection import QUIZ_SIZE, QuestionSelector

logger = logging.getLogger(__name__)

# Wraps idempotent reads only; submissions must never go through this.
retry_transient = retry(
    retry=retry_if_exception_type(StoreUnavailable),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=1),
    reraise=True,
)


class AssignmentManager:
    def __init__(self, db: Session, selector: QuestionSelector, repository: QuestionRepository,
                 history: UsageHistory, clock: DayClock):
        self.db = db
        self.selector = selector
        self.repository = repository
        self.history = history
        self.clock = clock

    @classmethod
    def for_session(cls, db: Session, clock: DayClock) -> "AssignmentManager":
        repository = QuestionRepository(db)
        history = UsageHistory(db, clock)
        return cls(db, QuestionSelector(repository, history), repository, history, clock)

    def _load(self, key: str) -> Optional[DailyAssignment]:
        return self.db.get(DailyAssignment, key, populate_existing=True)

    def current(self, subject: str, date: Optional[str] = None) -> Optional[Assignment]:
        row = self._load(assignment_key(date or self.clock.today(), subject))
        return Assignment.from_row(row, self.clock.now()) if row else None

    @retry_transient
    def get_or_create(self, subject: str, date: Optional[str] = None,
                      exclude_ids: Collection[str] = ()) -> Assignment:
        """Return the stored assignment, creating version 1 if absent.

        Creation is an INSERT .. ON CONFLICT DO NOTHING followed by a re-read,
        so concurrent first callers all end up with the single winning row.
        """
        ensure_subject(subject)
        date = date or self.clock.today()
        key = assignment_key(date, subject)
        try:
            row = self._load(key)
            if row is not None:
                return Assignment.from_row(row, self.clock.now())

            picked = self.selector.select(subject, exclude_ids)
            stmt = upsert_insert(self.db, DailyAssignment).values(
                id=key, date=date, subject=subject, quiz_version=1,
                generated_at=self.clock.now(), question_ids=[q.id for q in picked],
            ).on_conflict_do_nothing(index_elements=["id"])
            result = self.db.execute(stmt)
            self.db.commit()
            if result.rowcount:
                logger.info(f"Created assignment {key} with {len(picked)} questions")
            else:
                logger.info(f"Assignment {key} was created concurrently; using the stored one")

            row = self._load(key)
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store failure while resolving assignment {key}", exc_info=True)
            raise StoreUnavailable(f"Could not resolve assignment {key}") from e
        if row is None:
            raise StoreUnavailable(f"Assignment {key} vanished after creation")
        return Assignment.from_row(row, self.clock.now())

    def regenerate(self, subject: str) -> Assignment:
        """Overwrite today's assignment with a fresh set under the next version."""
        ensure_subject(subject)
        today = self.clock.today()
        key = assignment_key(today, subject)
        try:
            existing = self._load(key)
            exclude = self.history.today_attempt_ids(subject)
            if existing is not None:
                exclude.update(existing.question_ids or [])
            new_version = (existing.quiz_version or 1) + 1 if existing is not None else 1

            picked = self.selector.select(subject, exclude)
            values = dict(
                id=key, date=today, subject=subject, quiz_version=new_version,
                generated_at=self.clock.now(), question_ids=[q.id for q in picked],
            )
            stmt = upsert_insert(self.db, DailyAssignment).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={k: v for k, v in values.items() if k != "id"},
            )
            self.db.execute(stmt)
            self.db.commit()
            row = self._load(key)
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store failure while regenerating {key}", exc_info=True)
            raise StoreUnavailable(f"Could not regenerate assignment {key}") from e
        logger.info(f"Regenerated {key} as version {new_version} ({len(picked)} questions)")
        return Assignment.from_row(row, self.clock.now())

    def clear(self, date: str, subject: str) -> bool:
        key = assignment_key(date, subject)
        row = self._load(key)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        logger.info(f"Cleared assignment {key}")
        return True

    def _quiz_payload(self, assignment: Assignment) -> Dict[str, object]:
        ids = assignment.question_ids
        return {
            "quiz_version": assignment.quiz_version,
            "subject": assignment.subject,
            "questions": self.repository.fetch_by_ids(ids),
            # bonus is the last stored id of a full quiz, even if other questions no longer resolve
            "bonus_id": ids[-1] if len(ids) == QUIZ_SIZE else None,
        }

    def get_today_quiz(self, subject: str) -> Dict[str, object]:
        assignment = self.get_or_create(subject)
        return self._quiz_payload(assignment)

    def generate_new_quiz_version(self, subject: str) -> Dict[str, object]:
        assignment = self.regenerate(subject)
        return self._quiz_payload(assignment)

    def generate_tomorrow_preview(self, subject: str) -> Dict[str, object]:
        ensure_subject(subject)
        tomorrow = self.clock.tomorrow()
        exclude = self.history.assignment_ids(self.clock.today(), subject)
        assignment = self.get_or_create(subject, date=tomorrow, exclude_ids=exclude)
        questions: List[QuizQuestion] = self.repository.fetch_by_ids(assignment.question_ids)
        return {"date": tomorrow, "subject": subject, "questions": questions}
