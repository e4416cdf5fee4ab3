from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional, Union
from dailyquiz.core.auth import require_roles
from dailyquiz.core.clock import DayClock
from dailyquiz.api.deps import get_clock, get_repository
from dailyquiz.models.domain import QuizQuestion
from dailyquiz.services.questions import QuestionInput, QuestionRepository, QuestionUpdate

router = APIRouter()

class BulkImport(BaseModel):
    questions: List[QuestionInput]

def question_out(q: QuizQuestion) -> dict:
    return {
        "id": q.id, "stem": q.stem, "options": list(q.options), "correct_index": q.correct_index,
        "explanation": q.explanation, "topic": q.topic, "subject": q.subject, "difficulty": q.difficulty,
        "tags": list(q.tags), "active": q.active, "created_at": q.created_at,
    }

@router.get("/questions", dependencies=[Depends(require_roles("author"))])
def list_questions(subject: Optional[str] = None, repository: QuestionRepository = Depends(get_repository)):
    questions = repository.fetch_all()
    if subject is not None:
        questions = [q for q in questions if q.subject == subject]
    return {"questions": [question_out(q) for q in questions]}

@router.post("/questions", status_code=201, dependencies=[Depends(require_roles("author"))])
def create_questions(payload: Union[BulkImport, QuestionInput], repository: QuestionRepository = Depends(get_repository),
                     clock: DayClock = Depends(get_clock)):
    if isinstance(payload, BulkImport):
        return {"imported": repository.bulk_import(payload.questions, clock.now())}
    return {"question_id": repository.add(payload, clock.now())}

@router.patch("/questions/{question_id}", dependencies=[Depends(require_roles("author"))])
def update_question(question_id: str, payload: QuestionUpdate, repository: QuestionRepository = Depends(get_repository)):
    return question_out(repository.update(question_id, payload))

@router.delete("/questions/{question_id}", dependencies=[Depends(require_roles("author"))])
def delete_question(question_id: str, repository: QuestionRepository = Depends(get_repository)):
    repository.soft_delete(question_id)
    return {"ok": True}
