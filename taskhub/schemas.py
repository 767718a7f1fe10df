from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- requests ---

class UserCreate(CamelModel):
    email: str
    password: str
    username: Optional[str] = None
    referral_code: Optional[str] = None
    uid: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class TaskCreate(CamelModel):
    name: str
    description: str
    link: str
    total_slots: int
    price: float


class ReviewRequest(CamelModel):
    status: Literal["approved", "rejected"]


class WithdrawalCreate(CamelModel):
    amount: float
    network: str
    phone_number: str


class AddBalanceRequest(CamelModel):
    amount: float = Field(gt=0)
    type: Literal["deposit", "withdrawal"]


# --- responses ---

class UserOut(CamelModel):
    id: int
    email: str
    username: Optional[str] = None
    referral_code: str
    deposit_balance: float
    withdrawable_balance: float
    is_admin: bool
    is_banned: bool
    referred_by_id: Optional[int] = None
    created_at: Optional[datetime] = None


class UserSummary(CamelModel):
    id: int
    email: str
    referral_code: str


class TokenOut(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class TaskOut(CamelModel):
    id: int
    owner_id: int
    name: str
    description: str
    link: str
    price: float
    total_slots: int
    remaining_slots: int
    is_completed: bool
    created_at: Optional[datetime] = None


class CompletionOut(CamelModel):
    id: int
    task_id: int
    user_id: int
    text_proof: Optional[str] = None
    image_proof: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


class TransactionOut(CamelModel):
    id: int
    user_id: int
    type: str
    amount: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class DepositOut(CamelModel):
    id: int
    user_id: int
    amount: float
    payment_name: Optional[str] = None
    payment_receipt: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


class WithdrawalOut(CamelModel):
    id: int
    user_id: int
    amount: float
    network: Optional[str] = None
    phone_number: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


class NotificationOut(CamelModel):
    id: int
    message: str
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationFeed(CamelModel):
    unread_count: int
    notifications: List[NotificationOut]


class ReferralOut(CamelModel):
    id: int
    email: str
    referral_code: str
    created_at: Optional[datetime] = None
    bonus: float


class StatsOut(CamelModel):
    user_count: int
    active_task_count: int
    pending_deposit_count: int
    pending_withdrawal_count: int
    pending_completion_count: int


class ReconcileOut(CamelModel):
    user_id: int
    deposit_balance: float
    ledger_deposit_balance: float
    withdrawable_balance: float
    ledger_withdrawable_balance: float
    balanced: bool
