"""
Tool loan lifecycle: pickup evidence, returns and restocking.

Pickup photo attachment is fail-fast: the first failing update aborts the
request. Auto-return is best-effort: each loan is processed inside its own
SAVEPOINT so one bad row is logged and skipped while the rest are returned.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import session_scope
from ..models.models import Tool, ToolLoan
from ..schemas.reports import ToolPhoto
from .audit import create_activity_log

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LoanReturnOutcome:
    loan_id: int
    alat_id: int
    jumlah: int
    returned: bool
    restocked: bool = False
    error: Optional[str] = None


def restock_tool(db: Session, alat_id: int, quantity: int) -> bool:
    """
    Put ``quantity`` units back into a tool's available stock.

    Uses a single atomic increment so concurrent returns cannot lose updates.
    Failures are logged and reported as False; they never raise.
    """
    try:
        with db.begin_nested():
            updated = (
                db.query(Tool)
                .filter(Tool.id == alat_id)
                .update({Tool.stok_tersedia: Tool.stok_tersedia + quantity}, synchronize_session=False)
            )
    except SQLAlchemyError as e:
        logger.error("tool_restock_failed", alat_id=alat_id, jumlah=quantity, error=str(e))
        return False
    if not updated:
        logger.warning("tool_restock_missing_tool", alat_id=alat_id, jumlah=quantity)
        return False
    return True


def attach_pickup_photos(db: Session, penugasan_id: int, photos: List[ToolPhoto]) -> int:
    """
    Stamp pickup evidence on the active loan of each listed tool.

    Raises:
        HTTPException(500) on the first failed update; nothing is committed then.
    """
    try:
        for photo in photos:
            db.query(ToolLoan).filter(
                ToolLoan.penugasan_id == penugasan_id,
                ToolLoan.alat_id == photo.alat_id,
                ToolLoan.is_returned == False,  # noqa: E712
            ).update({ToolLoan.foto_ambil_url: photo.foto_url}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("tool_pickup_photo_failed", penugasan_id=penugasan_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal menyimpan foto pengambilan alat")
    return len(photos)


def mark_loan_returned(db: Session, loan_id: int, foto_kembali_url: str, returned_at: datetime) -> None:
    db.query(ToolLoan).filter(ToolLoan.id == loan_id).update(
        {
            ToolLoan.is_returned: True,
            ToolLoan.returned_at: returned_at,
            ToolLoan.foto_kembali_url: foto_kembali_url,
        },
        synchronize_session=False,
    )


def auto_return_tools(
    db: Session,
    penugasan_id: int,
    fallback_photo_url: str,
    return_photos: Optional[List[ToolPhoto]] = None,
) -> List[LoanReturnOutcome]:
    """
    Return every active loan of an assignment and restock its tools.

    Args:
        db: Database session
        penugasan_id: Assignment whose loans are returned
        fallback_photo_url: Photo used for tools without their own return photo
        return_photos: Optional per-tool return photos

    Returns:
        One outcome per active loan; units count only for returned loans
    """
    photo_by_tool: Dict[int, str] = {}
    for photo in return_photos or []:
        photo_by_tool.setdefault(photo.alat_id, photo.foto_url)

    active_loans = (
        db.query(ToolLoan.id, ToolLoan.alat_id, ToolLoan.jumlah)
        .filter(ToolLoan.penugasan_id == penugasan_id, ToolLoan.is_returned == False)  # noqa: E712
        .order_by(ToolLoan.id)
        .all()
    )

    now = datetime.now(timezone.utc)
    outcomes: List[LoanReturnOutcome] = []
    for loan_id, alat_id, jumlah in active_loans:
        try:
            with db.begin_nested():
                mark_loan_returned(db, loan_id, photo_by_tool.get(alat_id) or fallback_photo_url, now)
        except SQLAlchemyError as e:
            logger.error("tool_auto_return_failed", penugasan_id=penugasan_id, loan_id=loan_id, error=str(e))
            outcomes.append(LoanReturnOutcome(loan_id, alat_id, jumlah, returned=False, error=str(e)))
            continue

        restocked = restock_tool(db, alat_id, jumlah)
        outcomes.append(LoanReturnOutcome(loan_id, alat_id, jumlah, returned=True, restocked=restocked))

    db.commit()
    return outcomes


def returned_units(outcomes: List[LoanReturnOutcome]) -> int:
    return sum(o.jumlah for o in outcomes if o.returned)


def return_single_tool(db: Session, penugasan_id: int, alat_id: int, foto_url: str) -> ToolLoan:
    """Manually return the loan of one tool for an assignment."""
    loan = (
        db.query(ToolLoan)
        .filter(ToolLoan.penugasan_id == penugasan_id, ToolLoan.alat_id == alat_id)
        .order_by(ToolLoan.is_returned.asc(), ToolLoan.id.desc())
        .first()
    )
    if not loan:
        raise HTTPException(status_code=404, detail="Peminjaman alat tidak ditemukan")
    if loan.is_returned:
        raise HTTPException(status_code=400, detail="Alat sudah dikembalikan")

    loan.is_returned = True
    loan.returned_at = datetime.now(timezone.utc)
    loan.foto_kembali_url = foto_url
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("tool_return_failed", penugasan_id=penugasan_id, alat_id=alat_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal menandai pengembalian")

    restock_tool(db, alat_id, loan.jumlah)
    db.commit()
    db.refresh(loan)
    return loan


def emit_tool_return_log(user_id: uuid.UUID, penugasan_id: int, alat_id: int) -> None:
    """Activity log entry for a manual return; failures are only logged."""
    with session_scope() as db:
        try:
            create_activity_log(
                db,
                pengguna_id=user_id,
                aksi="Pengembalian Alat",
                deskripsi=f"Alat {alat_id} dikembalikan untuk penugasan {penugasan_id}",
                context={"penugasan_id": penugasan_id, "alat_id": alat_id},
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("tool_return_activity_log_failed", penugasan_id=penugasan_id, alat_id=alat_id, error=str(e))
