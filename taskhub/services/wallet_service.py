import re

from fastapi import UploadFile
from sqlalchemy.orm import Session

from taskhub.models import Deposit, Withdrawal, User, ReviewStatus, WithdrawalStatus, TransactionType
from taskhub.database import unit_of_work
from taskhub.core.config import settings
from taskhub.core.exceptions import ValidationError
from taskhub.core.logger import logger
from taskhub.services.ledger import LedgerService, WITHDRAWABLE_BALANCE, to_money
from taskhub.services.storage import discard_upload, has_upload, save_upload_file

PHONE_RE = re.compile(r"^\d{11}$")


class WalletService:
    @staticmethod
    def request_deposit(db: Session, user: User, amount, payment_name: str,
                        payment_receipt: UploadFile) -> Deposit:
        amount = to_money(amount)
        if amount < settings.MIN_DEPOSIT:
            raise ValidationError(f"Minimum deposit is {settings.MIN_DEPOSIT}")
        payment_name = (payment_name or "").strip()
        if not payment_name:
            raise ValidationError("Payment name is required")
        if not has_upload(payment_receipt):
            raise ValidationError("Payment receipt is required")

        receipt = save_upload_file(payment_receipt)
        deposit = Deposit(user_id=user.id, amount=amount, payment_name=payment_name,
                          payment_receipt=receipt, status=ReviewStatus.PENDING)
        try:
            with unit_of_work(db):
                db.add(deposit)
                db.flush()
        except Exception:
            discard_upload(receipt)
            raise

        logger.info(f"User {user.id} requested deposit {deposit.id} of {amount}")
        return deposit

    @staticmethod
    def request_withdrawal(db: Session, user: User, amount, network: str, phone_number: str) -> Withdrawal:
        """Debit the withdrawable balance now; the admin later marks it paid.

        Debiting at request time keeps several pending requests from spending
        the same funds twice.
        """
        amount = to_money(amount)
        if amount < settings.MIN_WITHDRAWAL:
            raise ValidationError(f"Minimum withdrawal is {settings.MIN_WITHDRAWAL}")
        network = (network or "").strip()
        if not network:
            raise ValidationError("Network is required")
        phone_number = (phone_number or "").strip()
        if not PHONE_RE.match(phone_number):
            raise ValidationError("Phone number must be 11 digits")

        with unit_of_work(db):
            LedgerService.debit(db, user, WITHDRAWABLE_BALANCE, amount, TransactionType.WITHDRAWAL,
                                description=f"Withdrawal to {network}")
            withdrawal = Withdrawal(user_id=user.id, amount=amount, network=network,
                                    phone_number=phone_number, status=WithdrawalStatus.PENDING)
            db.add(withdrawal)
            db.flush()

        logger.info(f"User {user.id} requested withdrawal {withdrawal.id} of {amount}")
        return withdrawal

    @staticmethod
    def list_deposits(db: Session, user: User):
        return db.query(Deposit).filter(Deposit.user_id == user.id)\
            .order_by(Deposit.created_at.desc(), Deposit.id.desc()).all()

    @staticmethod
    def list_withdrawals(db: Session, user: User):
        return db.query(Withdrawal).filter(Withdrawal.user_id == user.id)\
            .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc()).all()
