from fastapi import Depends
from sqlalchemy.orm import Session
from dailyquiz.core.clock import DayClock
from dailyquiz.core.config import QUIZ_TIMEZONE
from dailyquiz.core.database import get_db
from dailyquiz.services.assignments import AssignmentManager
from dailyquiz.services.questions import QuestionRepository
from dailyquiz.services.stats import StatsRecorder
from dailyquiz.services.submissions import SubmissionService

_clock = DayClock(QUIZ_TIMEZONE)

def get_clock() -> DayClock:
    return _clock

def get_repository(db: Session = Depends(get_db)) -> QuestionRepository:
    return QuestionRepository(db)

def get_assignments(db: Session = Depends(get_db), clock: DayClock = Depends(get_clock)) -> AssignmentManager:
    return AssignmentManager.for_session(db, clock)

def get_stats(db: Session = Depends(get_db)) -> StatsRecorder:
    return StatsRecorder(db)

def get_submissions(db: Session = Depends(get_db), clock: DayClock = Depends(get_clock)) -> SubmissionService:
    assignments = AssignmentManager.for_session(db, clock)
    return SubmissionService(db, assignments, assignments.repository, StatsRecorder(db), clock)
