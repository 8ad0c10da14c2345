from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user
from ..models.models import Profile
from ..schemas.reports import MarkNotificationsRead, NotificationResponse
from ..services.notifications import (
    STATUS_READ,
    STATUS_UNREAD,
    list_notifications,
    mark_notifications_read,
)

router = APIRouter(prefix="/notifikasi", tags=["notifikasi"])


@router.get("")
def get_notifications(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """Notifications addressed to the current user, newest first"""
    if status and status not in (STATUS_UNREAD, STATUS_READ):
        raise HTTPException(status_code=400, detail="Status notifikasi tidak valid")
    rows = list_notifications(db, user.id, status=status, limit=limit)
    return {
        "data": [NotificationResponse.model_validate(n) for n in rows],
        "count": len(rows),
    }


@router.patch("")
def mark_read(
    body: Optional[MarkNotificationsRead] = Body(None),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    updated = mark_notifications_read(db, user.id, body.ids if body else None)
    return {"message": "Notifikasi ditandai dibaca", "updated": updated}
