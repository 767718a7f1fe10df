import io
import os
from decimal import Decimal

import openpyxl
import pytest
from starlette.datastructures import UploadFile

from taskhub.core.config import settings
from taskhub.core.exceptions import Conflict, NotFound, ValidationError
from taskhub.models import AuditLog, Notification, Transaction, TransactionType
from taskhub.services.admin_service import AdminService
from taskhub.services.completion_service import CompletionService
from taskhub.services.ledger import LedgerService
from taskhub.services.task_service import TaskService
from taskhub.services.wallet_service import WalletService

TASK = dict(name="Follow our page", description="Follow the page and screenshot it",
            link="https://example.com/page")


def _receipt():
    return UploadFile(file=io.BytesIO(b"\xff\xd8 jpeg"), filename="receipt.jpg")


def test_deposit_request_is_pending_until_approved(db, make_user):
    user = make_user()
    deposit = WalletService.request_deposit(db, user, 500, "Jane Doe", _receipt())

    db.refresh(user)
    assert deposit.status == "pending"
    assert deposit.payment_receipt.endswith(".jpg")
    assert user.deposit_balance == Decimal("0.00")


@pytest.mark.parametrize("amount,name,with_receipt", [
    (99, "Jane", True),
    (500, " ", True),
    (500, "Jane", False),
])
def test_deposit_request_validation(db, make_user, amount, name, with_receipt):
    user = make_user()
    with pytest.raises(ValidationError):
        WalletService.request_deposit(db, user, amount, name, _receipt() if with_receipt else None)


def test_approve_deposit_credits_once(db, make_user, admin):
    user = make_user()
    deposit = WalletService.request_deposit(db, user, 500, "Jane Doe", _receipt())

    approved = AdminService.approve_deposit(db, admin, deposit.id)

    assert approved.status == "approved"
    assert approved.reviewed_at is not None
    db.refresh(user)
    assert user.deposit_balance == Decimal("500.00")

    with pytest.raises(Conflict):
        AdminService.approve_deposit(db, admin, deposit.id)
    with pytest.raises(Conflict):
        AdminService.reject_deposit(db, admin, deposit.id)

    db.refresh(user)
    assert user.deposit_balance == Decimal("500.00")
    assert db.query(Transaction).filter(
        Transaction.user_id == user.id, Transaction.type == TransactionType.DEPOSIT
    ).count() == 1
    assert db.query(AuditLog).filter(AuditLog.action == "approve_deposit").count() == 1


def test_reject_deposit_moves_nothing(db, make_user, admin):
    user = make_user()
    deposit = WalletService.request_deposit(db, user, 500, "Jane Doe", _receipt())

    rejected = AdminService.reject_deposit(db, admin, deposit.id)

    assert rejected.status == "rejected"
    db.refresh(user)
    assert user.deposit_balance == Decimal("0.00")
    assert db.query(Notification).filter(Notification.user_id == user.id).count() == 1
    with pytest.raises(Conflict):
        AdminService.approve_deposit(db, admin, deposit.id)


def test_unknown_deposit(db, admin):
    with pytest.raises(NotFound):
        AdminService.approve_deposit(db, admin, 12345)


def test_list_deposits_filters_by_status(db, make_user, admin):
    user = make_user()
    first = WalletService.request_deposit(db, user, 500, "Jane Doe", _receipt())
    second = WalletService.request_deposit(db, user, 700, "Jane Doe", _receipt())
    AdminService.approve_deposit(db, admin, first.id)

    assert [d.id for d in AdminService.list_deposits(db, "pending")] == [second.id]
    assert len(AdminService.list_deposits(db)) == 2


def test_complete_withdrawal_once(db, make_user, admin):
    user = make_user(withdrawable=500)
    withdrawal = WalletService.request_withdrawal(db, user, 500, "MTN", "08012345678")

    done = AdminService.complete_withdrawal(db, admin, withdrawal.id)

    assert done.status == "completed"
    assert done.completed_at is not None
    with pytest.raises(Conflict):
        AdminService.complete_withdrawal(db, admin, withdrawal.id)
    with pytest.raises(NotFound):
        AdminService.complete_withdrawal(db, admin, 999)

    db.refresh(user)
    assert user.withdrawable_balance == Decimal("0.00")


def test_export_withdrawals_is_a_workbook(db, make_user):
    user = make_user(email="payee@example.com", withdrawable=1000)
    WalletService.request_withdrawal(db, user, 150, "MTN", "08012345678")
    WalletService.request_withdrawal(db, user, 250, "Glo", "08112345678")

    content = AdminService.export_withdrawals(db, "pending")

    wb = openpyxl.load_workbook(io.BytesIO(content))
    rows = list(wb.active.iter_rows(values_only=True))
    assert rows[0][:4] == ("ID", "User ID", "Email", "Amount")
    assert len(rows) == 3
    assert {r[2] for r in rows[1:]} == {"payee@example.com"}
    assert sorted(r[3] for r in rows[1:]) == [150, 250]


def test_get_user_by_id_or_referral_code(db, make_user):
    user = make_user()
    assert AdminService.get_user(db, str(user.id)).id == user.id
    assert AdminService.get_user(db, user.referral_code).id == user.id
    assert AdminService.get_user(db, user.referral_code.lower()).id == user.id
    with pytest.raises(NotFound):
        AdminService.get_user(db, "ZZZZZZZZ")


def test_ban_and_unban_are_idempotent(db, make_user, admin):
    user = make_user()

    AdminService.set_banned(db, admin, str(user.id), True)
    AdminService.set_banned(db, admin, str(user.id), True)
    db.refresh(user)
    assert user.is_banned is True

    AdminService.set_banned(db, admin, user.referral_code, False)
    AdminService.set_banned(db, admin, user.referral_code, False)
    db.refresh(user)
    assert user.is_banned is False

    actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["ban_user", "unban_user"]


def test_admin_cannot_ban_self(db, admin):
    with pytest.raises(ValidationError):
        AdminService.set_banned(db, admin, str(admin.id), True)


@pytest.mark.parametrize("balance_type,tx_type,field", [
    ("deposit", TransactionType.DEPOSIT, "deposit_balance"),
    ("withdrawal", TransactionType.ADMIN_CREDIT, "withdrawable_balance"),
])
def test_add_balance(db, make_user, admin, balance_type, tx_type, field):
    user = make_user()

    AdminService.add_balance(db, admin, str(user.id), "125.50", balance_type)

    db.refresh(user)
    assert getattr(user, field) == Decimal("125.50")
    tx = db.query(Transaction).filter(Transaction.user_id == user.id).one()
    assert tx.type == tx_type
    assert LedgerService.reconcile(db, user)["balanced"]


def test_add_balance_validation(db, make_user, admin):
    user = make_user()
    with pytest.raises(ValidationError):
        AdminService.add_balance(db, admin, str(user.id), 10, "bonus")
    with pytest.raises(ValidationError):
        AdminService.add_balance(db, admin, str(user.id), 0, "deposit")


def test_stats(db, make_user, admin):
    owner = make_user(deposit=1000, withdrawable=500)
    worker = make_user()
    task = TaskService.create_task(db, owner, total_slots=2, price=100, **TASK)
    CompletionService.submit_proof(db, task.id, worker, text_proof="done")
    WalletService.request_deposit(db, worker, 200, "Worker", _receipt())
    WalletService.request_withdrawal(db, owner, 100, "MTN", "08012345678")

    assert AdminService.stats(db) == {
        "user_count": 3,
        "active_task_count": 1,
        "pending_deposit_count": 1,
        "pending_withdrawal_count": 1,
        "pending_completion_count": 1,
    }


def _stored_files():
    return set(os.listdir(settings.UPLOAD_DIR)) if os.path.isdir(settings.UPLOAD_DIR) else set()


def test_failed_deposit_insert_removes_receipt(db, make_user, monkeypatch):
    user = make_user()
    before = _stored_files()

    def broken_flush(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(db, "flush", broken_flush)
    with pytest.raises(RuntimeError):
        WalletService.request_deposit(db, user, 500, "Jane Doe", _receipt())

    monkeypatch.undo()
    assert _stored_files() == before
    assert AdminService.list_deposits(db) == []
