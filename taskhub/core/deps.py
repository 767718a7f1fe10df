from typing import Optional
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from jose import jwt, JWTError
from pydantic import BaseModel
from sqlalchemy.orm import Session
from taskhub.core.config import settings
from taskhub.core.exceptions import Unauthenticated, Forbidden
from taskhub.database import get_db
from taskhub.models import User

class TokenData(BaseModel):
    uid: Optional[str] = None

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

def _token_from_cookie(request: Request) -> Optional[str]:
    # multipart uploads are sent with credentials: include, so the cookie
    # stands in when no Authorization header is present
    raw = request.cookies.get("access_token")
    if not raw:
        return None
    scheme, _, param = raw.partition(" ")
    if scheme.lower() == "bearer" and param:
        return param
    return raw

def authenticate(db: Session, token: Optional[str]) -> User:
    if not token:
        raise Unauthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        uid: str = payload.get("sub")
        if uid is None:
            raise Unauthenticated("Could not validate credentials")
        token_data = TokenData(uid=uid)
    except JWTError:
        raise Unauthenticated("Could not validate credentials")

    user = db.query(User).filter(User.uid == token_data.uid).first()
    if user is None:
        raise Unauthenticated("Could not validate credentials")
    return user

# 1. any authenticated user (read access, banned users included)
async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    return authenticate(db, token or _token_from_cookie(request))

# 2. users allowed to change state
async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if current_user.is_banned:
        raise Forbidden("Your account has been banned")
    return current_user

# 3. administrators, by role column; a banned admin loses the role as well
async def get_current_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    if not current_user.is_admin:
        raise Forbidden("Administrator access required")
    return current_user

def rate_limit(times: int, seconds: int):
    """Redis-backed limiter that stays inert until FastAPILimiter is initialised."""
    limiter = RateLimiter(times=times, seconds=seconds)

    async def _limit(request: Request, response: Response):
        if FastAPILimiter.redis is None:
            return
        await limiter(request, response)

    return Depends(_limit)
