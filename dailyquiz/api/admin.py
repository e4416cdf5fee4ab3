from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from rq.job import Job
from dailyquiz.core.auth import require_roles
from dailyquiz.api.deps import get_assignments, get_repository, get_stats, get_submissions
from dailyquiz.jobs.queue import queue, redis
from dailyquiz.jobs.assignment_jobs import reset_assignments_job
from dailyquiz.services.assignments import AssignmentManager
from dailyquiz.services.questions import QuestionRepository
from dailyquiz.services.stats import StatsRecorder
from dailyquiz.services.submissions import SubmissionService, results_summary

router = APIRouter()

class PreviewQuestion(BaseModel):
    id: str
    stem: str
    options: List[str]
    correct_index: int
    explanation: str
    topic: str
    difficulty: int

class Preview(BaseModel):
    date: str
    subject: str
    questions: List[PreviewQuestion]

class ResetRequest(BaseModel):
    subjects: Optional[List[str]] = None

class ResetJobStatus(BaseModel):
    state: str
    current: int
    total: int
    result: dict | None = None

@router.get("/preview", response_model=Preview, dependencies=[Depends(require_roles("admin"))])
def tomorrow_preview(subject: str, assignments: AssignmentManager = Depends(get_assignments)):
    preview = assignments.generate_tomorrow_preview(subject)
    questions = [
        PreviewQuestion(id=q.id, stem=q.stem, options=list(q.options), correct_index=q.correct_index,
                        explanation=q.explanation, topic=q.topic, difficulty=q.difficulty)
        for q in preview["questions"]
    ]
    return Preview(date=preview["date"], subject=preview["subject"], questions=questions)

@router.get("/stats", dependencies=[Depends(require_roles("admin"))])
def question_stats(stats: StatsRecorder = Depends(get_stats), repository: QuestionRepository = Depends(get_repository)):
    return {"questions": stats.question_stats_report(repository)}

@router.get("/results", dependencies=[Depends(require_roles("admin"))])
def results(start_date: Optional[str] = None, end_date: Optional[str] = None, limit: int = 100,
            submissions: SubmissionService = Depends(get_submissions)):
    if start_date and end_date:
        attempts = submissions.attempts_by_date_range(start_date, end_date)[:limit]
    else:
        attempts = submissions.all_attempts(limit)
    return {"attempts": attempts, "summary": results_summary(attempts)}

@router.post("/assignments/reset", dependencies=[Depends(require_roles("admin"))])
def reset_assignments(payload: ResetRequest):
    job = queue.enqueue(reset_assignments_job, payload.subjects, job_timeout=600)
    return {"job_id": job.get_id()}

@router.get("/assignments/jobs/{job_id}", response_model=ResetJobStatus, dependencies=[Depends(require_roles("admin"))])
def reset_status(job_id: str):
    job = Job.fetch(job_id, connection=redis)
    meta = job.meta or {}
    status = job.get_status()
    state = meta.get("state") or getattr(status, "value", status) or "unknown"
    return ResetJobStatus(
        state=state,
        current=int(meta.get("current") or 0),
        total=int(meta.get("total") or 0),
        result=job.result if state == "done" else None,
    )
