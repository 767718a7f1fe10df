from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models
from ..core import deps
from ..schemas import TransactionOut, DepositOut, WithdrawalOut, WithdrawalCreate
from ..services.ledger import LedgerService
from ..services.wallet_service import WalletService

router = APIRouter(prefix="/api", tags=["Wallet"])

@router.get("/transactions", response_model=List[TransactionOut])
def transaction_log(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return LedgerService.history(db, user)

# 1. funding: receipt goes to an admin for approval
@router.get("/deposits", response_model=List[DepositOut])
def my_deposits(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return WalletService.list_deposits(db, user)

@router.post("/deposits", response_model=DepositOut, status_code=status.HTTP_201_CREATED,
             dependencies=[deps.rate_limit(times=5, seconds=60)])
def request_deposit(
    amount: float = Form(...),
    payment_name: str = Form(..., alias="paymentName"),
    payment_receipt: UploadFile = File(..., alias="paymentReceipt"),
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_active_user),
):
    return WalletService.request_deposit(db, user, amount, payment_name, payment_receipt)

# 2. cash-out
@router.get("/withdrawals", response_model=List[WithdrawalOut])
def my_withdrawals(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return WalletService.list_withdrawals(db, user)

@router.post("/withdrawals", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED,
             dependencies=[deps.rate_limit(times=5, seconds=60)])
def request_withdrawal(
    payload: WithdrawalCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_active_user),
):
    return WalletService.request_withdrawal(db, user, payload.amount, payload.network, payload.phone_number)
