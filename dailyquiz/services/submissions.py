"""
Attempt submission, scoring and the read side of the attempt log.
"""
import hashlib
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from dailyquiz.core.clock import DayClock
from dailyquiz.core.errors import NoQuizAvailable, StoreUnavailable, ValidationError
from dailyquiz.models.domain import normalize_timestamp
from dailyquiz.models.orm import Attempt
from dailyquiz.services.assignments import AssignmentManager
from dailyquiz.services.questions import QuestionRepository, ensure_subject
from dailyquiz.services.stats import StatsRecorder

logger = logging.getLogger(__name__)

# A topic needs this many answered questions before it can count as weak.
WEAK_TOPIC_MIN_TOTAL = 2
WEAK_TOPIC_THRESHOLD = 0.7


class AnswerIn(BaseModel):
    question_id: str
    selected_index: int = Field(ge=0, le=3)


def hash_ip(ip: Optional[str]) -> Optional[str]:
    if not ip:
        return None
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()[:16]


def attempt_dict(row: Attempt) -> Dict[str, object]:
    return {
        "id": row.id,
        "date": row.date,
        "subject": row.subject,
        "user_label": row.user_label,
        "attempt_number": row.attempt_number,
        "quiz_version": row.quiz_version,
        "question_ids": list(row.question_ids or []),
        "answers": list(row.answers or []),
        "is_complete": row.is_complete,
        "score": row.score,
        "topic_breakdown": dict(row.topic_breakdown or {}),
        "submitted_at": normalize_timestamp(row.submitted_at),
        "duration_seconds": row.duration_seconds,
    }


def results_summary(attempts: Sequence[Dict[str, object]]) -> Dict[str, object]:
    """Attempt counts and average score per date plus overall per-topic accuracy."""
    by_date: "OrderedDict[str, List[int]]" = OrderedDict()
    topics: Dict[str, Dict[str, int]] = {}
    for a in sorted(attempts, key=lambda a: a["date"], reverse=True):
        by_date.setdefault(a["date"], []).append(a["score"])
        for topic, counts in (a.get("topic_breakdown") or {}).items():
            agg = topics.setdefault(topic, {"correct": 0, "total": 0})
            agg["correct"] += counts.get("correct", 0)
            agg["total"] += counts.get("total", 0)
    return {
        "total_attempts": len(attempts),
        "by_date": [
            {"date": d, "attempts": len(scores), "average_score": sum(scores) / len(scores)}
            for d, scores in by_date.items()
        ],
        "topics": topics,
    }


class SubmissionService:
    def __init__(self, db: Session, assignments: AssignmentManager, repository: QuestionRepository,
                 stats: StatsRecorder, clock: DayClock):
        self.db = db
        self.assignments = assignments
        self.repository = repository
        self.stats = stats
        self.clock = clock

    def _count_today(self, user_label: str, subject: str, today: str) -> int:
        return self.db.scalar(
            select(func.count()).select_from(Attempt).where(
                Attempt.user_label == user_label, Attempt.subject == subject, Attempt.date == today)
        ) or 0

    def submit(self, user_label: str, subject: str, answers: Sequence[AnswerIn],
               duration_seconds: int = 0, ip: Optional[str] = None) -> Dict[str, object]:
        """Validate, score and store one attempt; never retried automatically."""
        ensure_subject(subject)
        assignment = self.assignments.get_or_create(subject)
        if not assignment.question_ids:
            raise NoQuizAvailable(subject)
        expected = len(assignment.question_ids)
        if len(answers) != expected:
            raise ValidationError(f"Must answer all {expected} questions")
        allowed = set(assignment.question_ids)
        for a in answers:
            if a.question_id not in allowed:
                raise ValidationError(f"Question {a.question_id} is not part of today's quiz")
        seen = set()
        for a in answers:
            if a.question_id in seen:
                raise ValidationError(f"Question {a.question_id} is answered more than once")
            seen.add(a.question_id)

        questions = self.repository.fetch_by_ids(assignment.question_ids)
        selected = {a.question_id: a.selected_index for a in answers}
        score = 0
        breakdown: Dict[str, Dict[str, int]] = {}
        entries = []
        for q in questions:
            is_correct = selected.get(q.id) == q.correct_index
            topic = breakdown.setdefault(q.topic, {"correct": 0, "total": 0})
            topic["total"] += 1
            if is_correct:
                score += 1
                topic["correct"] += 1
            if q.id in selected:
                entries.append((q.id, user_label, is_correct))

        now = self.clock.now()
        today = self.clock.today()
        try:
            attempt_number = self._count_today(user_label, subject, today) + 1
            row = Attempt(
                date=today, subject=subject, user_label=user_label, attempt_number=attempt_number,
                quiz_version=assignment.quiz_version, question_ids=list(assignment.question_ids),
                answers=[{"question_id": a.question_id, "selected_index": a.selected_index} for a in answers],
                is_complete=True, score=score, topic_breakdown=breakdown, submitted_at=now,
                duration_seconds=max(int(duration_seconds or 0), 0), ip_hash=hash_ip(ip),
            )
            self.db.add(row)
            self.stats.stage_attempts(entries, now)
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Store failure while saving attempt for {user_label}/{subject}", exc_info=True)
            raise StoreUnavailable("Could not save the attempt") from e
        logger.info(f"Stored attempt {attempt_number} for {user_label}/{subject}: {score}/{len(questions)}")
        return {"attempt": attempt_dict(row), "questions": questions}

    def today_attempts(self, user_label: str, subject: str) -> List[Dict[str, object]]:
        rows = self.db.scalars(
            select(Attempt).where(Attempt.user_label == user_label, Attempt.subject == subject,
                                  Attempt.date == self.clock.today())
            .order_by(Attempt.attempt_number)
        ).all()
        return [attempt_dict(r) for r in rows]

    def has_attempted_today(self, user_label: str, subject: str) -> bool:
        return self._count_today(user_label, subject, self.clock.today()) > 0

    def attempt_by_id(self, attempt_id: str) -> Optional[Dict[str, object]]:
        row = self.db.get(Attempt, attempt_id)
        return attempt_dict(row) if row else None

    def attempts_by_date_range(self, start_date: str, end_date: str) -> List[Dict[str, object]]:
        rows = self.db.scalars(
            select(Attempt).where(Attempt.date >= start_date, Attempt.date <= end_date)
            .order_by(Attempt.date.desc(), Attempt.submitted_at.desc())
        ).all()
        return [attempt_dict(r) for r in rows]

    def all_attempts(self, limit: int = 100) -> List[Dict[str, object]]:
        rows = self.db.scalars(select(Attempt).order_by(Attempt.submitted_at.desc()).limit(limit)).all()
        return [attempt_dict(r) for r in rows]

    def progress_summary(self, user_label: str, subject: Optional[str] = None, days: int = 7) -> Dict[str, object]:
        if subject is not None:
            ensure_subject(subject)
        dates = self.clock.last_n_days(days)
        today = dates[0] if dates else self.clock.today()
        stmt = select(Attempt).where(Attempt.user_label == user_label, Attempt.date.in_(dates))
        if subject is not None:
            stmt = stmt.where(Attempt.subject == subject)
        rows = self.db.scalars(stmt.order_by(Attempt.submitted_at)).all()

        per_day = {d: {"date": d, "best_score": None, "attempts": 0} for d in dates}
        topics: Dict[str, Dict[str, int]] = {}
        for r in rows:
            day = per_day[r.date]
            day["attempts"] += 1
            day["best_score"] = r.score if day["best_score"] is None else max(day["best_score"], r.score)
            for topic, counts in (r.topic_breakdown or {}).items():
                agg = topics.setdefault(topic, {"correct": 0, "total": 0})
                agg["correct"] += counts.get("correct", 0)
                agg["total"] += counts.get("total", 0)

        weak = [
            {"topic": t, "correct": c["correct"], "total": c["total"], "rate": c["correct"] / c["total"]}
            for t, c in topics.items()
            if c["total"] >= WEAK_TOPIC_MIN_TOTAL and c["correct"] / c["total"] < WEAK_TOPIC_THRESHOLD
        ]
        weak.sort(key=lambda w: w["rate"])
        today_rows = [r for r in rows if r.date == today]
        return {
            "attempted_today": bool(today_rows),
            "today_attempts": len(today_rows),
            "today_best_score": max((r.score for r in today_rows), default=None),
            "days": [per_day[d] for d in dates],
            "weak_topics": weak,
        }
