import os
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..core import deps
from ..core.exceptions import NotFound
from ..schemas import (
    AddBalanceRequest, DepositOut, ReconcileOut, StatsOut, UserOut, WithdrawalOut,
)
from ..services.admin_service import AdminService
from ..services.storage import resolve_upload_path

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(deps.get_current_admin)])

# =======================
# 1. dashboard
# =======================
@router.get("/stats", response_model=StatsOut)
def dashboard_stats(db: Session = Depends(get_db)):
    return AdminService.stats(db)

# =======================
# 2. deposits
# =======================
@router.get("/deposits", response_model=List[DepositOut])
def list_deposits(status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return AdminService.list_deposits(db, status)

@router.post("/deposits/{deposit_id}/approve", response_model=DepositOut)
def approve_deposit(deposit_id: int, db: Session = Depends(get_db), admin=Depends(deps.get_current_admin)):
    return AdminService.approve_deposit(db, admin, deposit_id)

@router.post("/deposits/{deposit_id}/reject", response_model=DepositOut)
def reject_deposit(deposit_id: int, db: Session = Depends(get_db), admin=Depends(deps.get_current_admin)):
    return AdminService.reject_deposit(db, admin, deposit_id)

@router.get("/deposits/{deposit_id}/receipt")
def deposit_receipt(deposit_id: int, db: Session = Depends(get_db)):
    deposit = AdminService.get_deposit(db, deposit_id)
    path = resolve_upload_path(deposit.payment_receipt or "")
    if not deposit.payment_receipt or not os.path.isfile(path):
        raise NotFound("Receipt not found")
    return FileResponse(path, filename=os.path.basename(path))

# =======================
# 3. withdrawals
# =======================
@router.get("/withdrawals", response_model=List[WithdrawalOut])
def list_withdrawals(status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return AdminService.list_withdrawals(db, status)

@router.get("/withdrawals/export")
def export_withdrawals(status: Optional[str] = Query("pending"), db: Session = Depends(get_db)):
    content = AdminService.export_withdrawals(db, None if status == "all" else status)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="withdrawals.xlsx"'},
    )

@router.post("/withdrawals/{withdrawal_id}/complete", response_model=WithdrawalOut)
def complete_withdrawal(withdrawal_id: int, db: Session = Depends(get_db), admin=Depends(deps.get_current_admin)):
    return AdminService.complete_withdrawal(db, admin, withdrawal_id)

# =======================
# 4. users (looked up by id or referral code)
# =======================
@router.get("/users/{user_key}", response_model=UserOut)
def get_user(user_key: str, db: Session = Depends(get_db)):
    return AdminService.get_user(db, user_key)

@router.get("/users/{user_key}/reconcile", response_model=ReconcileOut)
def reconcile_user(user_key: str, db: Session = Depends(get_db)):
    return AdminService.reconcile_user(db, user_key)

@router.post("/users/{user_key}/ban", response_model=UserOut)
def ban_user(user_key: str, db: Session = Depends(get_db), admin=Depends(deps.get_current_admin)):
    return AdminService.set_banned(db, admin, user_key, True)

@router.post("/users/{user_key}/unban", response_model=UserOut)
def unban_user(user_key: str, db: Session = Depends(get_db), admin=Depends(deps.get_current_admin)):
    return AdminService.set_banned(db, admin, user_key, False)

@router.post("/users/{user_key}/add-balance", response_model=UserOut)
def add_balance(user_key: str, payload: AddBalanceRequest, db: Session = Depends(get_db),
                admin=Depends(deps.get_current_admin)):
    return AdminService.add_balance(db, admin, user_key, payload.amount, payload.type)
