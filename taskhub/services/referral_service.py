from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from taskhub.models import User, Transaction, TransactionType
from taskhub.core import security
from taskhub.core.config import settings
from taskhub.core.exceptions import ValidationError
from taskhub.core.logger import logger
from taskhub.services.ledger import LedgerService, WITHDRAWABLE_BALANCE, CENT, to_money
from taskhub.services.notification_service import NotificationService

MAX_CODE_ATTEMPTS = 20


def mask_email(email: str) -> str:
    if not email or "@" not in email:
        return ""
    name, domain = email.split("@", 1)
    return f"{name[:1]}***@{domain[:1]}***{domain[-4:]}"


class ReferralService:
    @staticmethod
    def issue_code(db: Session) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = security.generate_referral_code()
            if not db.query(User.id).filter(User.referral_code == code).first():
                return code
        raise RuntimeError("Could not allocate a unique referral code")

    @staticmethod
    def resolve_referrer(db: Session, code: Optional[str]) -> Optional[User]:
        code = (code or "").strip().upper()
        if not code:
            return None
        referrer = db.query(User).filter(User.referral_code == code).first()
        if not referrer:
            raise ValidationError("Invalid referral code")
        return referrer

    @staticmethod
    def bonus_for(amount) -> Decimal:
        return (to_money(amount) * settings.REFERRAL_BONUS_RATE).quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def award_deposit_bonus(db: Session, depositor: User, amount) -> Optional[Transaction]:
        """Credit the referrer's withdrawable balance for an approved deposit.

        Runs inside the deposit approval's unit of work.
        """
        if not depositor.referred_by_id:
            return None
        bonus = ReferralService.bonus_for(amount)
        if bonus <= 0:
            return None
        referrer = db.query(User).filter(User.id == depositor.referred_by_id).first()
        if not referrer:
            return None

        tx = LedgerService.credit(
            db, referrer, WITHDRAWABLE_BALANCE, bonus, TransactionType.REFERRAL_BONUS,
            description=f"Referral bonus from {mask_email(depositor.email)}",
            source_user_id=depositor.id,
        )
        NotificationService.notify(db, referrer.id, f"You earned a referral bonus of {bonus}.")
        logger.info(f"Referral bonus {bonus} to user {referrer.id} from user {depositor.id}")
        return tx

    @staticmethod
    def list_referrals(db: Session, user: User) -> list:
        children = db.query(User).filter(User.referred_by_id == user.id)\
            .order_by(User.created_at.desc(), User.id.desc()).all()
        bonuses = {}
        rows = db.query(Transaction).filter(
            Transaction.user_id == user.id,
            Transaction.type == TransactionType.REFERRAL_BONUS,
        ).all()
        for tx in rows:
            bonuses[tx.source_user_id] = bonuses.get(tx.source_user_id, Decimal("0.00")) + to_money(tx.amount)

        return [
            {
                "id": child.id,
                "email": mask_email(child.email),
                "referral_code": child.referral_code,
                "created_at": child.created_at,
                "bonus": bonuses.get(child.id, Decimal("0.00")),
            }
            for child in children
        ]
