import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dailyquiz.core.database import upsert_insert
from dailyquiz.models.domain import normalize_timestamp
from dailyquiz.models.orm import QuestionStat
from dailyquiz.services.questions import QuestionRepository

logger = logging.getLogger(__name__)

# (question_id, user_label, is_correct)
StatEntry = Tuple[str, str, bool]


def _stat_dict(row: QuestionStat) -> Dict[str, object]:
    return {
        "question_id": row.question_id,
        "user_label": row.user_label,
        "attempts": row.attempts,
        "correct": row.correct,
        "last_attempted_at": normalize_timestamp(row.last_attempted_at),
    }


class StatsRecorder:
    """Per (question, user) counters, incremented in the database."""

    def __init__(self, db: Session):
        self.db = db

    def stage_attempts(self, entries: Iterable[StatEntry], now: datetime) -> int:
        """Add the increment statement to the current transaction without committing."""
        totals: "OrderedDict[Tuple[str, str], List[int]]" = OrderedDict()
        for question_id, user_label, is_correct in entries:
            counts = totals.setdefault((question_id, user_label), [0, 0])
            counts[0] += 1
            counts[1] += 1 if is_correct else 0
        if not totals:
            return 0

        now = normalize_timestamp(now)
        rows = [
            {"question_id": q, "user_label": u, "attempts": a, "correct": c, "last_attempted_at": now}
            for (q, u), (a, c) in totals.items()
        ]
        stmt = upsert_insert(self.db, QuestionStat).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["question_id", "user_label"],
            set_={
                "attempts": QuestionStat.attempts + stmt.excluded.attempts,
                "correct": QuestionStat.correct + stmt.excluded.correct,
                "last_attempted_at": stmt.excluded.last_attempted_at,
            },
        )
        self.db.execute(stmt)
        return len(rows)

    def record_attempts(self, entries: Iterable[StatEntry], now: datetime) -> int:
        count = self.stage_attempts(entries, now)
        if count:
            self.db.commit()
            logger.info(f"Recorded statistics for {count} question/user pairs")
        return count

    def record_attempt(self, question_id: str, user_label: str, is_correct: bool, now: datetime) -> None:
        self.record_attempts([(question_id, user_label, is_correct)], now)

    def stats_for_user(self, user_label: str) -> List[Dict[str, object]]:
        rows = self.db.scalars(select(QuestionStat).where(QuestionStat.user_label == user_label)).all()
        return [_stat_dict(r) for r in rows]

    def stats_for_question(self, question_id: str) -> List[Dict[str, object]]:
        rows = self.db.scalars(select(QuestionStat).where(QuestionStat.question_id == question_id)).all()
        return [_stat_dict(r) for r in rows]

    def user_question_stats(self, question_id: str, user_label: str) -> Optional[Dict[str, object]]:
        row = self.db.get(QuestionStat, {"question_id": question_id, "user_label": user_label},
                          populate_existing=True)
        return _stat_dict(row) if row else None

    def aggregated_stats(self, question_id: str) -> Dict[str, object]:
        total_attempts, total_correct = self.db.execute(
            select(func.coalesce(func.sum(QuestionStat.attempts), 0),
                   func.coalesce(func.sum(QuestionStat.correct), 0))
            .where(QuestionStat.question_id == question_id)
        ).one()
        total_attempts, total_correct = int(total_attempts), int(total_correct)
        return {
            "total_attempts": total_attempts,
            "total_correct": total_correct,
            "success_rate": total_correct / total_attempts if total_attempts else 0.0,
        }

    def question_stats_report(self, repository: QuestionRepository) -> List[Dict[str, object]]:
        """Per-question totals with a per-user breakdown, most attempted first."""
        by_question: Dict[str, List[QuestionStat]] = {}
        for row in self.db.scalars(select(QuestionStat)).all():
            by_question.setdefault(row.question_id, []).append(row)

        questions = {q.id: q for q in repository.fetch_by_ids(list(by_question))}
        report = []
        for question_id, rows in by_question.items():
            attempts = sum(r.attempts for r in rows)
            correct = sum(r.correct for r in rows)
            question = questions.get(question_id)
            report.append({
                "question_id": question_id,
                "stem": question.stem if question else None,
                "topic": question.topic if question else None,
                "subject": question.subject if question else None,
                "total_attempts": attempts,
                "total_correct": correct,
                "success_rate": correct / attempts if attempts else 0.0,
                "users": sorted(
                    ({"user_label": r.user_label, "attempts": r.attempts, "correct": r.correct} for r in rows),
                    key=lambda u: u["attempts"], reverse=True,
                ),
            })
        report.sort(key=lambda r: r["total_attempts"], reverse=True)
        return report
