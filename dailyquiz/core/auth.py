from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import List
import jwt
from datetime import datetime, timedelta, timezone
from dailyquiz.core.config import APP_SECRET, TOKEN_TTL_MINUTES

class TokenData(BaseModel):
    sub: str
    roles: List[str]

    @property
    def user_label(self) -> str:
        return self.sub

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

bearer = HTTPBearer()

def create_token(user_label: str, roles: List[str], ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": user_label, "roles": roles, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp())}
    return jwt.encode(payload, APP_SECRET, algorithm="HS256")

def get_current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> TokenData:
    try:
        payload = jwt.decode(creds.credentials, APP_SECRET, algorithms=["HS256"])
        return TokenData(sub=payload["sub"], roles=payload.get("roles", []))
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def require_roles(*required: str):
    def checker(user: TokenData = Depends(get_current_user)):
        # admins pass every role check
        if user.is_admin or set(user.roles).intersection(required):
            return user
        raise HTTPException(status_code=403, detail="Insufficient role")
    return checker
