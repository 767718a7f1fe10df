from sqlalchemy.orm import Session

from taskhub.models import Notification, User


class NotificationService:
    @staticmethod
    def notify(db: Session, user_id: int, message: str) -> Notification:
        # committed together with whatever mutation triggered it
        note = Notification(user_id=user_id, message=message, is_read=False)
        db.add(note)
        return note

    @staticmethod
    def list_for(db: Session, user: User):
        return db.query(Notification).filter(Notification.user_id == user.id)\
            .order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    @staticmethod
    def unread_count(db: Session, user: User) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.is_read == False,  # noqa: E712
        ).count()

    @staticmethod
    def mark_all_read(db: Session, user: User) -> int:
        changed = db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.is_read == False,  # noqa: E712
        ).update({"is_read": True}, synchronize_session=False)
        db.commit()
        return changed
