import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import EvidencePair
from ..schemas.reports import EvidencePairIn

logger = structlog.get_logger(__name__)


def _parse_taken_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def save_evidence_pairs(
    db: Session,
    laporan_id: int,
    pairs: List[EvidencePairIn],
    taken_by: uuid.UUID,
) -> int:
    """
    Insert a report's before/after pairs as one batch.

    The capture time is the before photo's timestamp, else the after photo's,
    else now. A failed batch raises 500; the parent report stays committed.
    """
    if not pairs:
        return 0

    now = datetime.now(timezone.utc)
    rows = []
    for pair in pairs:
        taken_at = _parse_taken_at(pair.before.taken_at) or _parse_taken_at(pair.after.taken_at) or now
        rows.append(
            EvidencePair(
                laporan_id=laporan_id,
                pair_key=pair.pair_key or str(uuid.uuid4()),
                judul=pair.judul or None,
                deskripsi=pair.deskripsi or None,
                before_foto_url=pair.before.foto_url,
                after_foto_url=pair.after.foto_url,
                taken_at=taken_at,
                taken_by=taken_by,
                metadata_json=pair.before.metadata or pair.after.metadata or None,
            )
        )

    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("evidence_pairs_insert_failed", laporan_id=laporan_id, count=len(rows), error=str(e))
        raise HTTPException(status_code=500, detail="Gagal menyimpan bukti before/after")
    return len(rows)
