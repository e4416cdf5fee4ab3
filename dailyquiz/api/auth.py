from fastapi import APIRouter
from pydantic import BaseModel
from typing import List
from dailyquiz.core.auth import create_token

router = APIRouter()

class MockLogin(BaseModel):
    user_label: str
    roles: List[str] = ["student"]

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    token = create_token(payload.user_label, payload.roles)
    return {"access_token": token, "token_type": "bearer", "roles": payload.roles}
