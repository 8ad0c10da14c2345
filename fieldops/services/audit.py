"""
Activity log service.
Append-only activity log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict

from sqlalchemy.orm import Session

from ..models.models import ActivityLog
from ..config import settings


def compute_integrity_hash(canonical_data: Dict, integrity_secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    hash_input = f"{canonical_json}:{integrity_secret}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def create_activity_log(
    db: Session,
    pengguna_id: Optional[uuid.UUID],
    aksi: str,
    deskripsi: Optional[str] = None,
    context: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
) -> ActivityLog:
    """
    Create an append-only activity log entry.

    Args:
        db: Database session
        pengguna_id: Profile that performed the action
        aksi: Action name (e.g. "Laporan Progres", "Pengembalian Alat")
        deskripsi: Human readable description
        context: Additional context (penugasan_id, laporan_id, ...)
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        Created ActivityLog object
    """
    timestamp_utc = datetime.now(timezone.utc)

    if integrity_secret is None:
        integrity_secret = settings.jwt_secret

    integrity_hash = None
    if integrity_secret:
        integrity_hash = compute_integrity_hash(
            {
                "pengguna_id": str(pengguna_id) if pengguna_id else None,
                "aksi": aksi,
                "deskripsi": deskripsi,
                "timestamp_utc": timestamp_utc.isoformat(),
                "context": context,
            },
            integrity_secret,
        )

    entry = ActivityLog(
        pengguna_id=pengguna_id,
        aksi=aksi,
        deskripsi=deskripsi,
        context=context,
        timestamp_utc=timestamp_utc,
        integrity_hash=integrity_hash,
    )

    db.add(entry)
    db.commit()
    db.refresh(entry)

    return entry
