import io
import itertools
import re
from decimal import Decimal

import pytest
from starlette.datastructures import UploadFile

from taskhub.core import security
from taskhub.core.exceptions import NotFound, ValidationError
from taskhub.models import Transaction, TransactionType
from taskhub.services.admin_service import AdminService
from taskhub.services.ledger import LedgerService
from taskhub.services.referral_service import ReferralService, mask_email
from taskhub.services.wallet_service import WalletService


def _receipt():
    return UploadFile(file=io.BytesIO(b"%PDF-1.4 receipt"), filename="receipt.pdf")


def test_codes_are_unique_and_well_formed(make_user):
    codes = [make_user().referral_code for _ in range(10)]
    assert len(set(codes)) == 10
    for code in codes:
        assert re.fullmatch(r"[A-Z0-9]{8}", code)


def test_register_with_referral_links_referrer(make_user):
    referrer = make_user()
    child = make_user(referral_code=referrer.referral_code.lower())
    assert child.referred_by_id == referrer.id


def test_unknown_referral_code_rejected(make_user):
    with pytest.raises(ValidationError):
        make_user(referral_code="NOPE0000")


def test_bonus_rate():
    assert ReferralService.bonus_for(1000) == Decimal("50.00")
    assert ReferralService.bonus_for("0.10") == Decimal("0.01")


def test_mask_email():
    assert mask_email("alice@example.com") == "a***@e***.com"
    assert mask_email("") == ""


def test_approved_deposit_pays_referrer(db, make_user, admin):
    referrer = make_user()
    child = make_user(referral_code=referrer.referral_code)
    deposit = WalletService.request_deposit(db, child, 1000, "Child Name", _receipt())

    AdminService.approve_deposit(db, admin, deposit.id)

    db.refresh(referrer)
    db.refresh(child)
    assert child.deposit_balance == Decimal("1000.00")
    assert referrer.withdrawable_balance == Decimal("50.00")
    assert referrer.deposit_balance == Decimal("0.00")

    bonus = db.query(Transaction).filter(
        Transaction.user_id == referrer.id, Transaction.type == TransactionType.REFERRAL_BONUS
    ).one()
    assert bonus.amount == Decimal("50.00")
    assert bonus.source_user_id == child.id
    assert LedgerService.reconcile(db, referrer)["balanced"]


def test_rejected_deposit_pays_no_bonus(db, make_user, admin):
    referrer = make_user()
    child = make_user(referral_code=referrer.referral_code)
    deposit = WalletService.request_deposit(db, child, 1000, "Child Name", _receipt())

    AdminService.reject_deposit(db, admin, deposit.id)

    db.refresh(referrer)
    assert referrer.withdrawable_balance == Decimal("0.00")
    assert db.query(Transaction).filter(Transaction.type == TransactionType.REFERRAL_BONUS).count() == 0


def test_unreferred_deposit_pays_no_bonus(db, make_user, admin):
    user = make_user()
    deposit = WalletService.request_deposit(db, user, 500, "Solo", _receipt())
    AdminService.approve_deposit(db, admin, deposit.id)
    assert db.query(Transaction).filter(Transaction.type == TransactionType.REFERRAL_BONUS).count() == 0


def test_list_referrals_sums_bonus_per_child(db, make_user, admin):
    referrer = make_user()
    paying = make_user(referral_code=referrer.referral_code)
    idle = make_user(referral_code=referrer.referral_code)
    for amount in (1000, 200):
        deposit = WalletService.request_deposit(db, paying, amount, "Payer", _receipt())
        AdminService.approve_deposit(db, admin, deposit.id)

    rows = {row["id"]: row for row in ReferralService.list_referrals(db, referrer)}

    assert set(rows) == {paying.id, idle.id}
    assert rows[paying.id]["bonus"] == Decimal("60.00")
    assert rows[idle.id]["bonus"] == Decimal("0.00")
    assert "***" in rows[paying.id]["email"]
    assert ReferralService.list_referrals(db, paying) == []


def test_generated_codes_never_all_digits(monkeypatch):
    picks = itertools.chain("73914205", itertools.repeat("K"))
    monkeypatch.setattr(security.secrets, "choice", lambda alphabet: next(picks))

    assert security.generate_referral_code() == "KKKKKKKK"


def test_numeric_key_is_an_id_and_code_lookup_is_separate(db, make_user):
    first = make_user()
    second = make_user()

    assert AdminService.get_user(db, str(second.id)).id == second.id
    assert AdminService.get_user(db, first.referral_code).id == first.id
    with pytest.raises(NotFound):
        AdminService.get_user(db, "99999999")
