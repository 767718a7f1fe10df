from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..core import deps
from ..schemas import NotificationFeed
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

@router.get("", response_model=NotificationFeed)
def list_notifications(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return NotificationFeed(
        unread_count=NotificationService.unread_count(db, user),
        notifications=NotificationService.list_for(db, user),
    )

@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user=Depends(deps.get_current_active_user)):
    changed = NotificationService.mark_all_read(db, user)
    return {"updated": changed}
