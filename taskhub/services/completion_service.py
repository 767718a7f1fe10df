import os
from datetime import datetime
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskhub.models import Task, TaskCompletion, User, ReviewStatus, TransactionType
from taskhub.database import unit_of_work
from taskhub.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from taskhub.core.logger import logger
from taskhub.services.ledger import LedgerService, WITHDRAWABLE_BALANCE
from taskhub.services.notification_service import NotificationService
from taskhub.services.storage import discard_upload, has_upload, resolve_upload_path, save_upload_file

DECISIONS = (ReviewStatus.APPROVED, ReviewStatus.REJECTED)


class CompletionService:
    """Proof submission and owner review.

    A completion starts ``pending`` and is decided exactly once. Slots are
    consumed when the owner approves, not when proof is submitted, so a task
    can collect more submissions than it has slots and the owner picks which
    ones to pay.
    """

    @staticmethod
    def submit_proof(db: Session, task_id: int, user: User, text_proof: Optional[str] = None,
                     image_proof: Optional[UploadFile] = None) -> TaskCompletion:
        text_proof = (text_proof or "").strip() or None
        if not text_proof and not has_upload(image_proof):
            raise ValidationError("Please provide either text proof or image proof")

        task = db.query(Task).filter(Task.id == task_id).first()
        if not task or task.remaining_slots <= 0:
            raise NotFound("Task not found or no longer accepting submissions")
        if task.owner_id == user.id:
            raise Forbidden("You cannot complete your own task")

        exists = db.query(TaskCompletion).filter(
            TaskCompletion.task_id == task_id,
            TaskCompletion.user_id == user.id,
        ).first()
        if exists:
            raise Conflict("You have already submitted proof for this task")

        image_path = save_upload_file(image_proof) if has_upload(image_proof) else None
        completion = TaskCompletion(
            task_id=task_id, user_id=user.id, text_proof=text_proof,
            image_proof=image_path, status=ReviewStatus.PENDING,
        )
        try:
            with unit_of_work(db):
                db.add(completion)
                db.flush()
        except IntegrityError:
            # lost a race against a parallel submission from the same user
            discard_upload(image_path)
            raise Conflict("You have already submitted proof for this task")
        except Exception:
            discard_upload(image_path)
            raise

        logger.info(f"User {user.id} submitted proof {completion.id} for task {task_id}")
        return completion

    @staticmethod
    def get_for_user(db: Session, task_id: int, user: User) -> Optional[TaskCompletion]:
        return db.query(TaskCompletion).filter(
            TaskCompletion.task_id == task_id,
            TaskCompletion.user_id == user.id,
        ).first()

    @staticmethod
    def proof_image_path(db: Session, completion_id: int, user: User) -> str:
        """Stored proof image, visible to the submitter and the task owner only."""
        completion = db.query(TaskCompletion).filter(TaskCompletion.id == completion_id).first()
        if not completion:
            raise NotFound("Completion not found")
        if user.id != completion.user_id and user.id != completion.task.owner_id:
            raise Forbidden("You cannot view this proof")
        path = resolve_upload_path(completion.image_proof or "")
        if not completion.image_proof or not os.path.isfile(path):
            raise NotFound("Proof image not found")
        return path

    @staticmethod
    def list_for_owner(db: Session, task_id: int, owner: User):
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFound("Task not found")
        if task.owner_id != owner.id:
            raise Forbidden("You do not own this task")
        return db.query(TaskCompletion).filter(TaskCompletion.task_id == task_id)\
            .order_by(TaskCompletion.created_at.desc(), TaskCompletion.id.desc()).all()

    @staticmethod
    def pending_count(db: Session) -> int:
        return db.query(TaskCompletion).filter(TaskCompletion.status == ReviewStatus.PENDING).count()

    @staticmethod
    def review(db: Session, completion_id: int, reviewer: User, decision: str) -> TaskCompletion:
        if decision not in DECISIONS:
            raise ValidationError("Status must be 'approved' or 'rejected'")

        with unit_of_work(db):
            completion = db.query(TaskCompletion).filter(TaskCompletion.id == completion_id)\
                .with_for_update().first()
            if not completion:
                raise NotFound("Completion not found")
            task = db.query(Task).filter(Task.id == completion.task_id).with_for_update().first()
            if task.owner_id != reviewer.id:
                raise Forbidden("Only the task owner can review submissions")
            if completion.status != ReviewStatus.PENDING:
                raise Conflict("This submission has already been reviewed")
            if decision == ReviewStatus.APPROVED and task.remaining_slots <= 0:
                raise Conflict("No slots remaining for this task")

            # the status guard makes the decision single-shot even without row locks
            claimed = db.query(TaskCompletion).filter(
                TaskCompletion.id == completion.id,
                TaskCompletion.status == ReviewStatus.PENDING,
            ).update({"status": decision, "reviewed_at": datetime.utcnow()}, synchronize_session=False)
            if not claimed:
                raise Conflict("This submission has already been reviewed")

            if decision == ReviewStatus.APPROVED:
                CompletionService._settle_approval(db, task, completion)
                message = f"Your submission for \"{task.name}\" was approved. {task.price} has been added to your balance."
            else:
                message = f"Your submission for \"{task.name}\" was rejected."
            NotificationService.notify(db, completion.user_id, message)

        db.refresh(completion)
        logger.info(f"User {reviewer.id} {decision} completion {completion.id} on task {task.id}")
        return completion

    @staticmethod
    def _settle_approval(db: Session, task: Task, completion: TaskCompletion):
        taken = db.query(Task).filter(Task.id == task.id, Task.remaining_slots > 0).update(
            {Task.remaining_slots: Task.remaining_slots - 1}, synchronize_session=False
        )
        if not taken:
            raise Conflict("No slots remaining for this task")
        db.query(Task).filter(Task.id == task.id, Task.remaining_slots == 0).update(
            {Task.is_completed: True}, synchronize_session=False
        )
        db.expire(task, ["remaining_slots", "is_completed"])

        submitter = db.query(User).filter(User.id == completion.user_id).first()
        LedgerService.credit(db, submitter, WITHDRAWABLE_BALANCE, task.price,
                             TransactionType.TASK_CREDIT, description=f"Task completed: {task.name}")
