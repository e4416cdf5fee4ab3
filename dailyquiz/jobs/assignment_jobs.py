"""
Maintenance jobs run on the rq worker.

``reset_assignments_job`` drops today's and tomorrow's assignments so they are
selected again on the next read; ``prepare_previews_job`` builds tomorrow's
previews ahead of time. Both accept a session factory and clock so they can
be run directly outside the worker.
"""
import logging
from rq import get_current_job
from dailyquiz.core.clock import DayClock
from dailyquiz.core.config import QUIZ_TIMEZONE, SUBJECTS
from dailyquiz.core.database import SessionLocal
from dailyquiz.services.assignments import AssignmentManager
from dailyquiz.services.questions import ensure_subject

logger = logging.getLogger(__name__)


def _update_meta(job, **fields):
    if job is None:
        return
    job.meta.update(fields)
    job.save_meta()


def reset_assignments_job(subjects=None, session_factory=None, clock=None):
    subjects = [ensure_subject(s) for s in (subjects or SUBJECTS)]
    session_factory = session_factory or SessionLocal
    clock = clock or DayClock(QUIZ_TIMEZONE)
    job = get_current_job()
    _update_meta(job, state="running", current=0, total=len(subjects))

    cleared = []
    db = session_factory()
    try:
        manager = AssignmentManager.for_session(db, clock)
        for i, subject in enumerate(subjects):
            for date in (clock.today(), clock.tomorrow()):
                if manager.clear(date, subject):
                    cleared.append(f"{date}-{subject}")
            _update_meta(job, current=i + 1)
            logger.info(f"Reset assignments for {subject} ({i + 1}/{len(subjects)})")
    except Exception:
        _update_meta(job, state="failed")
        raise
    finally:
        db.close()

    result = {"cleared": cleared}
    _update_meta(job, state="done")
    return result


def prepare_previews_job(subjects=None, session_factory=None, clock=None):
    subjects = [ensure_subject(s) for s in (subjects or SUBJECTS)]
    session_factory = session_factory or SessionLocal
    clock = clock or DayClock(QUIZ_TIMEZONE)
    job = get_current_job()
    _update_meta(job, state="running", current=0, total=len(subjects))

    previews = {}
    db = session_factory()
    try:
        manager = AssignmentManager.for_session(db, clock)
        for i, subject in enumerate(subjects):
            preview = manager.generate_tomorrow_preview(subject)
            previews[subject] = [q.id for q in preview["questions"]]
            _update_meta(job, current=i + 1)
            logger.info(f"Prepared preview for {subject} on {preview['date']} ({len(previews[subject])} questions)")
    except Exception:
        _update_meta(job, state="failed")
        raise
    finally:
        db.close()

    _update_meta(job, state="done")
    return {"date": clock.tomorrow(), "previews": previews}
