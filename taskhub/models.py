from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base

Money = Numeric(12, 2, asdecimal=True)


class ReviewStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalStatus:
    PENDING = "pending"
    COMPLETED = "completed"


class TransactionType:
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TASK_CREDIT = "task_credit"
    TASK_DEBIT = "task_debit"
    REFERRAL_BONUS = "referral_bonus"
    ADMIN_CREDIT = "admin_credit"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("deposit_balance >= 0", name="ck_users_deposit_balance"),
        CheckConstraint("withdrawable_balance >= 0", name="ck_users_withdrawable_balance"),
    )
    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(128), unique=True, index=True, nullable=False)  # token subject
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(50))
    hashed_password = Column(String(255))

    referral_code = Column(String(16), unique=True, index=True, nullable=False)
    referred_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # spend-only: funds task creation
    deposit_balance = Column(Money, default=0, nullable=False)
    # earn-only: the only balance that can be cashed out
    withdrawable_balance = Column(Money, default=0, nullable=False)

    is_admin = Column(Boolean, default=False, nullable=False)
    is_banned = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now())

    referred_by = relationship("User", remote_side=[id])


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("remaining_slots >= 0", name="ck_tasks_remaining_slots_min"),
        CheckConstraint("remaining_slots <= total_slots", name="ck_tasks_remaining_slots_max"),
    )
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    link = Column(String(500), nullable=False)
    price = Column(Money, nullable=False)
    total_slots = Column(Integer, nullable=False)
    remaining_slots = Column(Integer, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now())

    owner = relationship("User")


class TaskCompletion(Base):
    __tablename__ = "task_completions"
    # one submission per (task, user), whatever its status
    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_task_completions_task_user"),)
    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text_proof = Column(Text, nullable=True)
    image_proof = Column(String(255), nullable=True)
    status = Column(String(20), default=ReviewStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=func.now())
    reviewed_at = Column(DateTime, nullable=True)

    user = relationship("User")
    task = relationship("Task")


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)  # always positive, sign comes from type
    description = Column(String(255))
    # referral_bonus: the referred user whose deposit produced the bonus
    source_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())


class Deposit(Base):
    __tablename__ = "deposits"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_name = Column(String(100))
    payment_receipt = Column(String(255))
    status = Column(String(20), default=ReviewStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=func.now())
    reviewed_at = Column(DateTime, nullable=True)
    user = relationship("User")


class Withdrawal(Base):
    __tablename__ = "withdrawals"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    network = Column(String(50))
    phone_number = Column(String(20))
    status = Column(String(20), default=WithdrawalStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=func.now())
    completed_at = Column(DateTime, nullable=True)
    user = relationship("User")


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer)
    action = Column(String(50))
    target_id = Column(Integer)
    detail = Column(Text)
    created_at = Column(DateTime, default=func.now())
