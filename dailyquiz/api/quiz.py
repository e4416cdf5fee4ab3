from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from dailyquiz.core.auth import get_current_user, TokenData
from dailyquiz.core.clock import DayClock
from dailyquiz.api.deps import get_assignments, get_clock, get_submissions
from dailyquiz.models.domain import QuizQuestion
from dailyquiz.services.assignments import AssignmentManager
from dailyquiz.services.selection import HARD
from dailyquiz.services.submissions import AnswerIn, SubmissionService

router = APIRouter()

EMPTY_POOL_MESSAGE = "The question bank for this subject is being revised. Please check back later."

class QuizQuestionOut(BaseModel):
    id: str
    stem: str
    options: List[str]
    topic: str
    is_bonus: bool = False

class TodayQuiz(BaseModel):
    quiz_version: int
    subject: str
    questions: List[QuizQuestionOut]
    started_at: str
    message: Optional[str] = None

class RetryRequest(BaseModel):
    subject: str

class SubmitRequest(BaseModel):
    subject: str
    answers: List[AnswerIn]
    duration_seconds: int = Field(ge=0, default=0)

class Feedback(BaseModel):
    question_id: str
    topic: str
    selected_index: Optional[int]
    correct_index: int
    is_correct: bool
    explanation: str

class TopicScore(BaseModel):
    correct: int
    total: int

class SubmitResult(BaseModel):
    attempt_id: str
    attempt_number: int
    quiz_version: int
    score: int
    total: int
    topic_breakdown: Dict[str, TopicScore]
    feedback: List[Feedback]

def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None

def _quiz_view(quiz: dict, clock: DayClock) -> TodayQuiz:
    questions: List[QuizQuestion] = quiz["questions"]
    out = []
    for q in questions:
        out.append(QuizQuestionOut(**q.public_view(), is_bonus=(q.id == quiz.get("bonus_id") and q.difficulty == HARD)))
    return TodayQuiz(
        quiz_version=quiz["quiz_version"], subject=quiz["subject"], questions=out,
        started_at=clock.now().isoformat(), message=None if out else EMPTY_POOL_MESSAGE,
    )

@router.get("/today", response_model=TodayQuiz)
def today_quiz(subject: str, assignments: AssignmentManager = Depends(get_assignments), clock: DayClock = Depends(get_clock)):
    return _quiz_view(assignments.get_today_quiz(subject), clock)

@router.post("/retry", response_model=TodayQuiz)
def retry_quiz(payload: RetryRequest, user: TokenData = Depends(get_current_user),
               assignments: AssignmentManager = Depends(get_assignments), clock: DayClock = Depends(get_clock)):
    return _quiz_view(assignments.generate_new_quiz_version(payload.subject), clock)

@router.post("/submit", response_model=SubmitResult)
def submit_quiz(payload: SubmitRequest, request: Request, user: TokenData = Depends(get_current_user),
                submissions: SubmissionService = Depends(get_submissions)):
    result = submissions.submit(user.user_label, payload.subject, payload.answers,
                                payload.duration_seconds, ip=client_ip(request))
    attempt = result["attempt"]
    selected = {a["question_id"]: a["selected_index"] for a in attempt["answers"]}
    feedback = [
        Feedback(question_id=q.id, topic=q.topic, selected_index=selected.get(q.id), correct_index=q.correct_index,
                 is_correct=selected.get(q.id) == q.correct_index, explanation=q.explanation)
        for q in result["questions"]
    ]
    return SubmitResult(
        attempt_id=attempt["id"], attempt_number=attempt["attempt_number"], quiz_version=attempt["quiz_version"],
        score=attempt["score"], total=len(result["questions"]), topic_breakdown=attempt["topic_breakdown"],
        feedback=feedback,
    )

@router.get("/progress")
def progress(subject: Optional[str] = None, days: int = 7, user: TokenData = Depends(get_current_user),
             submissions: SubmissionService = Depends(get_submissions)):
    return submissions.progress_summary(user.user_label, subject, days)
