from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..core import deps
from ..core.config import settings
from ..schemas import UserCreate, LoginRequest, TokenOut, UserOut
from ..services.user_service import UserService

router = APIRouter(prefix="/api", tags=["Auth"])

def _token_response(response: Response, user) -> TokenOut:
    token = UserService.issue_token(user)
    response.set_cookie(
        key="access_token", value=f"Bearer {token}", httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, samesite="lax",
    )
    return TokenOut(access_token=token, user=UserOut.model_validate(user))

# registration is throttled against scripted sign-ups
@router.post("/users", response_model=TokenOut, status_code=status.HTTP_201_CREATED,
             dependencies=[deps.rate_limit(times=5, seconds=60)])
def register(payload: UserCreate, response: Response, db: Session = Depends(get_db)):
    user = UserService.register(
        db,
        email=payload.email,
        password=payload.password,
        username=payload.username,
        referral_code=payload.referral_code,
        uid=payload.uid,
    )
    return _token_response(response, user)

@router.post("/auth/login", response_model=TokenOut, dependencies=[deps.rate_limit(times=10, seconds=60)])
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = UserService.authenticate_credentials(db, payload.email, payload.password)
    return _token_response(response, user)

@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie("access_token")
    return {"success": True}
