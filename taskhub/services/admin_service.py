from datetime import datetime
from io import BytesIO
from typing import Optional

import openpyxl
from sqlalchemy.orm import Session

from taskhub.models import (
    AuditLog, Deposit, Withdrawal, User, ReviewStatus, WithdrawalStatus, TransactionType,
)
from taskhub.database import unit_of_work
from taskhub.core.exceptions import Conflict, NotFound, ValidationError
from taskhub.core.logger import logger
from taskhub.services.completion_service import CompletionService
from taskhub.services.ledger import LedgerService, DEPOSIT_BALANCE, WITHDRAWABLE_BALANCE, to_money
from taskhub.services.notification_service import NotificationService
from taskhub.services.referral_service import ReferralService
from taskhub.services.task_service import TaskService

# add-balance "type" -> (balance, transaction type)
ADJUSTMENTS = {
    "deposit": (DEPOSIT_BALANCE, TransactionType.DEPOSIT),
    "withdrawal": (WITHDRAWABLE_BALANCE, TransactionType.ADMIN_CREDIT),
}


def _audit(db: Session, admin: User, action: str, target_id: int, detail: str = ""):
    db.add(AuditLog(operator_id=admin.id, action=action, target_id=target_id, detail=detail))


class AdminService:
    """Manual reconciliation. Every money movement goes through LedgerService."""

    # =======================
    # 1. deposits
    # =======================
    @staticmethod
    def list_deposits(db: Session, status: Optional[str] = None):
        query = db.query(Deposit)
        if status:
            query = query.filter(Deposit.status == status)
        return query.order_by(Deposit.created_at.desc(), Deposit.id.desc()).all()

    @staticmethod
    def get_deposit(db: Session, deposit_id: int) -> Deposit:
        deposit = db.query(Deposit).filter(Deposit.id == deposit_id).first()
        if not deposit:
            raise NotFound("Deposit not found")
        return deposit

    @staticmethod
    def _claim_deposit(db: Session, deposit_id: int, decision: str) -> Deposit:
        deposit = db.query(Deposit).filter(Deposit.id == deposit_id).with_for_update().first()
        if not deposit:
            raise NotFound("Deposit not found")
        claimed = db.query(Deposit).filter(
            Deposit.id == deposit_id,
            Deposit.status == ReviewStatus.PENDING,
        ).update({"status": decision, "reviewed_at": datetime.utcnow()}, synchronize_session=False)
        if not claimed:
            raise Conflict("Deposit has already been processed")
        return deposit

    @staticmethod
    def approve_deposit(db: Session, admin: User, deposit_id: int) -> Deposit:
        with unit_of_work(db):
            deposit = AdminService._claim_deposit(db, deposit_id, ReviewStatus.APPROVED)
            depositor = db.query(User).filter(User.id == deposit.user_id).first()
            amount = to_money(deposit.amount)
            LedgerService.credit(db, depositor, DEPOSIT_BALANCE, amount, TransactionType.DEPOSIT,
                                 description="Wallet funding approved")
            ReferralService.award_deposit_bonus(db, depositor, amount)
            NotificationService.notify(db, depositor.id, f"Your deposit of {amount} has been approved.")
            _audit(db, admin, "approve_deposit", deposit_id, f"amount={amount}")

        db.refresh(deposit)
        logger.info(f"Admin {admin.id} approved deposit {deposit_id}")
        return deposit

    @staticmethod
    def reject_deposit(db: Session, admin: User, deposit_id: int) -> Deposit:
        with unit_of_work(db):
            deposit = AdminService._claim_deposit(db, deposit_id, ReviewStatus.REJECTED)
            NotificationService.notify(db, deposit.user_id, f"Your deposit of {deposit.amount} was rejected.")
            _audit(db, admin, "reject_deposit", deposit_id)

        db.refresh(deposit)
        logger.info(f"Admin {admin.id} rejected deposit {deposit_id}")
        return deposit

    # =======================
    # 2. withdrawals
    # =======================
    @staticmethod
    def list_withdrawals(db: Session, status: Optional[str] = None):
        query = db.query(Withdrawal)
        if status:
            query = query.filter(Withdrawal.status == status)
        return query.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc()).all()

    @staticmethod
    def export_withdrawals(db: Session, status: Optional[str] = None) -> bytes:
        """Payout sheet for the finance team, one row per withdrawal."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "withdrawals"
        ws.append(["ID", "User ID", "Email", "Amount", "Network", "Phone", "Status", "Requested", "Completed"])
        for w in AdminService.list_withdrawals(db, status):
            ws.append([
                w.id, w.user_id, w.user.email if w.user else "", float(w.amount), w.network,
                w.phone_number, w.status, w.created_at, w.completed_at,
            ])
        f = BytesIO()
        wb.save(f)
        return f.getvalue()

    @staticmethod
    def complete_withdrawal(db: Session, admin: User, withdrawal_id: int) -> Withdrawal:
        # funds left the balance at request time; this only records the payout
        with unit_of_work(db):
            withdrawal = db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).with_for_update().first()
            if not withdrawal:
                raise NotFound("Withdrawal not found")
            claimed = db.query(Withdrawal).filter(
                Withdrawal.id == withdrawal_id,
                Withdrawal.status == WithdrawalStatus.PENDING,
            ).update({"status": WithdrawalStatus.COMPLETED, "completed_at": datetime.utcnow()},
                     synchronize_session=False)
            if not claimed:
                raise Conflict("Withdrawal has already been completed")
            NotificationService.notify(db, withdrawal.user_id,
                                       f"Your withdrawal of {withdrawal.amount} has been paid.")
            _audit(db, admin, "complete_withdrawal", withdrawal_id)

        db.refresh(withdrawal)
        logger.info(f"Admin {admin.id} completed withdrawal {withdrawal_id}")
        return withdrawal

    # =======================
    # 3. users
    # =======================
    @staticmethod
    def get_user(db: Session, key: str) -> User:
        key = str(key).strip()
        # referral codes always contain a letter, so the two key spaces never overlap
        if key.isdigit():
            user = db.query(User).filter(User.id == int(key)).first()
        else:
            user = db.query(User).filter(User.referral_code == key.upper()).first()
        if user is None:
            raise NotFound("User not found")
        return user

    @staticmethod
    def set_banned(db: Session, admin: User, key: str, banned: bool) -> User:
        user = AdminService.get_user(db, key)
        if user.id == admin.id:
            raise ValidationError("You cannot ban yourself")
        with unit_of_work(db):
            if user.is_banned != banned:
                user.is_banned = banned
                _audit(db, admin, "ban_user" if banned else "unban_user", user.id)

        logger.info(f"Admin {admin.id} set is_banned={banned} on user {user.id}")
        return user

    @staticmethod
    def add_balance(db: Session, admin: User, key: str, amount, balance_type: str) -> User:
        if balance_type not in ADJUSTMENTS:
            raise ValidationError("Type must be 'deposit' or 'withdrawal'")
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        user = AdminService.get_user(db, key)
        balance, tx_type = ADJUSTMENTS[balance_type]

        with unit_of_work(db):
            LedgerService.credit(db, user, balance, amount, tx_type, description="Manual adjustment by admin")
            NotificationService.notify(db, user.id, f"{amount} has been added to your {balance} balance.")
            _audit(db, admin, "add_balance", user.id, f"{balance}+{amount}")

        logger.info(f"Admin {admin.id} added {amount} to {balance} balance of user {user.id}")
        return user

    @staticmethod
    def reconcile_user(db: Session, key: str) -> dict:
        return LedgerService.reconcile(db, AdminService.get_user(db, key))

    # =======================
    # 4. dashboard
    # =======================
    @staticmethod
    def stats(db: Session) -> dict:
        return {
            "user_count": db.query(User).count(),
            "active_task_count": TaskService.active_count(db),
            "pending_deposit_count": db.query(Deposit).filter(Deposit.status == ReviewStatus.PENDING).count(),
            "pending_withdrawal_count": db.query(Withdrawal).filter(
                Withdrawal.status == WithdrawalStatus.PENDING).count(),
            "pending_completion_count": CompletionService.pending_count(db),
        }
