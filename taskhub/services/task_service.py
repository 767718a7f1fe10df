from urllib.parse import urlparse

from sqlalchemy.orm import Session

from taskhub.models import Task, TaskCompletion, User, TransactionType
from taskhub.database import unit_of_work
from taskhub.core.config import settings
from taskhub.core.exceptions import NotFound, ValidationError
from taskhub.core.logger import logger
from taskhub.services.ledger import LedgerService, DEPOSIT_BALANCE, to_money


def is_valid_url(link: str) -> bool:
    parsed = urlparse(link or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class TaskService:
    @staticmethod
    def validate(name: str, description: str, link: str, total_slots: int, price):
        name = (name or "").strip()
        description = (description or "").strip()
        if len(name) < 3:
            raise ValidationError("Task name must be at least 3 characters")
        if len(description) < 10:
            raise ValidationError("Description must be at least 10 characters")
        if not is_valid_url(link):
            raise ValidationError("Link must be a valid http(s) URL")
        if not isinstance(total_slots, int) or isinstance(total_slots, bool) \
                or not 1 <= total_slots <= settings.MAX_TASK_SLOTS:
            raise ValidationError(f"Total slots must be between 1 and {settings.MAX_TASK_SLOTS}")
        price = to_money(price)
        if price < settings.MIN_TASK_PRICE:
            raise ValidationError(f"Minimum price is {settings.MIN_TASK_PRICE}")
        return name, description, link.strip(), total_slots, price

    @staticmethod
    def create_task(db: Session, owner: User, name: str, description: str, link: str,
                    total_slots: int, price) -> Task:
        """Reserve the whole budget up front and open the task.

        The debit, its ``task_debit`` row and the task row commit together.
        """
        name, description, link, total_slots, price = TaskService.validate(
            name, description, link, total_slots, price
        )
        cost = price * total_slots

        with unit_of_work(db):
            LedgerService.debit(db, owner, DEPOSIT_BALANCE, cost, TransactionType.TASK_DEBIT,
                                description=f"Task created: {name}")
            task = Task(
                owner_id=owner.id, name=name, description=description, link=link,
                price=price, total_slots=total_slots, remaining_slots=total_slots,
                is_completed=False,
            )
            db.add(task)
            db.flush()

        logger.info(f"User {owner.id} created task {task.id} ({total_slots} x {price})")
        return task

    @staticmethod
    def get_task(db: Session, task_id: int) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFound("Task not found")
        return task

    @staticmethod
    def list_available(db: Session, user: User):
        submitted = db.query(TaskCompletion.task_id).filter(TaskCompletion.user_id == user.id)
        return db.query(Task).filter(
            Task.owner_id != user.id,
            Task.is_completed == False,  # noqa: E712
            ~Task.id.in_(submitted),
        ).order_by(Task.created_at.desc(), Task.id.desc()).all()

    @staticmethod
    def list_owned(db: Session, user: User):
        return db.query(Task).filter(Task.owner_id == user.id)\
            .order_by(Task.created_at.desc(), Task.id.desc()).all()

    @staticmethod
    def submitted_task_ids(db: Session, user: User):
        rows = db.query(TaskCompletion.task_id).filter(TaskCompletion.user_id == user.id).all()
        return [task_id for (task_id,) in rows]

    @staticmethod
    def active_count(db: Session) -> int:
        return db.query(Task).filter(Task.is_completed == False).count()  # noqa: E712
