"""
In-app notification records.
Delivery (push, email) is handled elsewhere; this only writes the inbox rows.
"""
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.models import Notification

STATUS_UNREAD = "Belum Dibaca"
STATUS_READ = "Dibaca"


def create_notification(db: Session, penerima_id: uuid.UUID, pesan: str) -> Notification:
    notification = Notification(penerima_id=penerima_id, pesan=pesan, status=STATUS_UNREAD)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def list_notifications(
    db: Session,
    penerima_id: uuid.UUID,
    status: Optional[str] = None,
    limit: int = 50,
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.penerima_id == penerima_id)
    if status:
        query = query.filter(Notification.status == status)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_notifications_read(db: Session, penerima_id: uuid.UUID, ids: Optional[List[int]] = None) -> int:
    """Mark the caller's unread notifications (all, or only ``ids``) as read."""
    query = db.query(Notification).filter(
        Notification.penerima_id == penerima_id,
        Notification.status == STATUS_UNREAD,
    )
    if ids:
        query = query.filter(Notification.id.in_(ids))
    updated = query.update({Notification.status: STATUS_READ}, synchronize_session=False)
    db.commit()
    return updated
