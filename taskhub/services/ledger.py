from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from taskhub.models import User, Transaction, TransactionType
from taskhub.core.exceptions import InsufficientFunds, ValidationError
from taskhub.core.logger import logger

DEPOSIT_BALANCE = "deposit"
WITHDRAWABLE_BALANCE = "withdrawable"

CENT = Decimal("0.01")

# sign of each transaction type in the balance it feeds
CONTRIBUTIONS = {
    DEPOSIT_BALANCE: {
        TransactionType.DEPOSIT: 1,
        TransactionType.TASK_DEBIT: -1,
    },
    WITHDRAWABLE_BALANCE: {
        TransactionType.TASK_CREDIT: 1,
        TransactionType.REFERRAL_BONUS: 1,
        TransactionType.ADMIN_CREDIT: 1,
        TransactionType.WITHDRAWAL: -1,
    },
}


def to_money(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _balance_column(balance: str):
    if balance == DEPOSIT_BALANCE:
        return User.deposit_balance
    if balance == WITHDRAWABLE_BALANCE:
        return User.withdrawable_balance
    raise ValueError(f"unknown balance {balance!r}")


def _check_pairing(balance: str, tx_type: str, sign: int):
    if CONTRIBUTIONS[balance].get(tx_type) != sign:
        raise ValueError(f"{tx_type} does not {'credit' if sign > 0 else 'debit'} the {balance} balance")


class LedgerService:
    """The only code path that moves money.

    Every call changes exactly one balance with an arithmetic UPDATE and adds
    exactly one Transaction row to the same session, so the two are committed
    or rolled back together by the caller's unit of work.
    """

    @staticmethod
    def credit(db: Session, user: User, balance: str, amount, tx_type: str,
               description: str = "", source_user_id: Optional[int] = None) -> Transaction:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        _check_pairing(balance, tx_type, 1)

        column = _balance_column(balance)
        db.query(User).filter(User.id == user.id).update(
            {column: column + amount}, synchronize_session=False
        )
        db.expire(user, [column.key])

        tx = Transaction(user_id=user.id, type=tx_type, amount=amount,
                         description=description, source_user_id=source_user_id)
        db.add(tx)
        logger.info(f"Ledger credit user={user.id} {balance}+{amount} type={tx_type}")
        return tx

    @staticmethod
    def debit(db: Session, user: User, balance: str, amount, tx_type: str,
              description: str = "") -> Transaction:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        _check_pairing(balance, tx_type, -1)

        column = _balance_column(balance)
        # guarded decrement: concurrent debits cannot drive the balance negative
        changed = db.query(User).filter(User.id == user.id, column >= amount).update(
            {column: column - amount}, synchronize_session=False
        )
        db.expire(user, [column.key])
        if not changed:
            logger.warning(f"Ledger debit refused user={user.id} {balance}-{amount}: insufficient funds")
            raise InsufficientFunds(f"Insufficient {balance} balance")

        tx = Transaction(user_id=user.id, type=tx_type, amount=amount, description=description)
        db.add(tx)
        logger.info(f"Ledger debit user={user.id} {balance}-{amount} type={tx_type}")
        return tx

    @staticmethod
    def history(db: Session, user: User):
        return db.query(Transaction).filter(Transaction.user_id == user.id)\
            .order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()

    @staticmethod
    def reconcile(db: Session, user: User) -> dict:
        """Recompute both balances from the transaction log."""
        db.flush()
        totals = {DEPOSIT_BALANCE: Decimal("0.00"), WITHDRAWABLE_BALANCE: Decimal("0.00")}
        for tx in db.query(Transaction).filter(Transaction.user_id == user.id).all():
            for balance, signs in CONTRIBUTIONS.items():
                if tx.type in signs:
                    totals[balance] += signs[tx.type] * to_money(tx.amount)

        db.refresh(user)
        stored_deposit = to_money(user.deposit_balance)
        stored_withdrawable = to_money(user.withdrawable_balance)
        return {
            "user_id": user.id,
            "deposit_balance": stored_deposit,
            "ledger_deposit_balance": totals[DEPOSIT_BALANCE],
            "withdrawable_balance": stored_withdrawable,
            "ledger_withdrawable_balance": totals[WITHDRAWABLE_BALANCE],
            "balanced": stored_deposit == totals[DEPOSIT_BALANCE]
            and stored_withdrawable == totals[WITHDRAWABLE_BALANCE],
        }
