from typing import List, Set
from sqlalchemy import select
from sqlalchemy.orm import Session
from dailyquiz.core.clock import DayClock
from dailyquiz.models.orm import Attempt, DailyAssignment

def assignment_key(date: str, subject: str) -> str:
    return f"{date}-{subject}"

class UsageHistory:
    """Which question ids a subject has shown recently."""

    def __init__(self, db: Session, clock: DayClock):
        self.db = db
        self.clock = clock

    def assignment_ids(self, date: str, subject: str) -> List[str]:
        row = self.db.get(DailyAssignment, assignment_key(date, subject))
        return list(row.question_ids or []) if row else []

    def attempt_ids(self, date: str, subject: str) -> Set[str]:
        used: Set[str] = set()
        stmt = select(Attempt.question_ids).where(Attempt.date == date, Attempt.subject == subject)
        for question_ids in self.db.scalars(stmt).all():
            used.update(question_ids or [])
        return used

    def today_attempt_ids(self, subject: str) -> Set[str]:
        return self.attempt_ids(self.clock.today(), subject)

    def recently_used_ids(self, subject: str, lookback_days: int) -> Set[str]:
        dates = self.clock.last_n_days(lookback_days)
        used: Set[str] = set()
        if dates:
            keys = [assignment_key(d, subject) for d in dates]
            rows = self.db.scalars(select(DailyAssignment).where(DailyAssignment.id.in_(keys))).all()
            for row in rows:
                used.update(row.question_ids or [])
        used |= self.today_attempt_ids(subject)
        return used
