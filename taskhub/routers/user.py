from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models
from ..core import deps
from ..schemas import UserOut, ReferralOut
from ..services.referral_service import ReferralService

router = APIRouter(prefix="/api", tags=["User"])

@router.get("/users/me", response_model=UserOut)
def read_me(user: models.User = Depends(deps.get_current_user)):
    return user

@router.get("/referrals", response_model=List[ReferralOut])
def list_referrals(
    user: models.User = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
):
    return ReferralService.list_referrals(db, user)
