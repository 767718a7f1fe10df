from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskhub.models import User
from taskhub.database import unit_of_work
from taskhub.core import security
from taskhub.core.exceptions import Conflict, Unauthenticated, ValidationError
from taskhub.core.logger import logger
from taskhub.services.referral_service import ReferralService


class UserService:
    @staticmethod
    def register(db: Session, email: str, password: str, username: Optional[str] = None,
                 referral_code: Optional[str] = None, uid: Optional[str] = None,
                 is_admin: bool = False) -> User:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid email is required")
        if len(password or "") < 6:
            raise ValidationError("Password must be at least 6 characters")

        if db.query(User.id).filter(User.email == email).first():
            raise Conflict("Email is already registered")
        if uid and db.query(User.id).filter(User.uid == uid).first():
            raise Conflict("Account already exists")

        referrer = ReferralService.resolve_referrer(db, referral_code)
        user = User(
            uid=uid or security.generate_uid(),
            email=email,
            username=username or email.split("@")[0],
            hashed_password=security.get_password_hash(password),
            referral_code=ReferralService.issue_code(db),
            referred_by_id=referrer.id if referrer else None,
            deposit_balance=0,
            withdrawable_balance=0,
            is_admin=is_admin,
        )
        try:
            with unit_of_work(db):
                db.add(user)
                db.flush()
        except IntegrityError:
            raise Conflict("Account already exists")

        logger.info(f"New user registered: {user.id} <{email}>")
        return user

    @staticmethod
    def authenticate_credentials(db: Session, email: str, password: str) -> User:
        user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
        if not user or not security.verify_password(password, user.hashed_password):
            logger.warning(f"Failed login for {email}")
            raise Unauthenticated("Incorrect email or password")
        return user

    @staticmethod
    def issue_token(user: User) -> str:
        return security.create_access_token({"sub": user.uid})
