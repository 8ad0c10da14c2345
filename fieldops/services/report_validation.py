import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import session_scope
from ..models.models import Assignment, ProgressReport, Profile
from ..schemas.reports import ProgressStatus, ValidationStatus
from .audit import create_activity_log
from .notifications import create_notification

logger = structlog.get_logger(__name__)

ASSIGNMENT_AWAITING_FINAL_VALIDATION = "Menunggu Validasi"


def get_report(db: Session, laporan_id: int) -> ProgressReport:
    report = db.query(ProgressReport).filter(ProgressReport.id == laporan_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Laporan tidak ditemukan")
    return report


def all_reports_approved(db: Session, penugasan_id: int) -> bool:
    not_approved = db.query(func.count(ProgressReport.id)).filter(
        ProgressReport.penugasan_id == penugasan_id,
        ProgressReport.status_validasi != ValidationStatus.approved.value,
    ).scalar()
    return not not_approved


def validate_report(
    db: Session,
    laporan_id: int,
    supervisor: Profile,
    status_validasi: Optional[str],
    catatan_validasi: Optional[str] = None,
) -> Tuple[ProgressReport, bool]:
    """
    Approve or reject a pending progress report.

    Returns:
        Tuple of (report, assignment_ready) where assignment_ready is True when
        this approval moved the assignment to final validation
    """
    if status_validasi not in (ValidationStatus.approved.value, ValidationStatus.rejected.value):
        raise HTTPException(status_code=400, detail="Status validasi harus Disetujui atau Ditolak")

    report = get_report(db, laporan_id)
    assignment = db.query(Assignment).filter(Assignment.id == report.penugasan_id).first()
    if not assignment or assignment.supervisor_id != supervisor.id:
        raise HTTPException(status_code=404, detail="Laporan tidak ditemukan")
    if report.status_validasi != ValidationStatus.pending.value:
        raise HTTPException(status_code=400, detail="Laporan sudah divalidasi")

    report.status_validasi = status_validasi
    report.divalidasi_oleh = supervisor.id
    report.divalidasi_pada = datetime.now(timezone.utc)
    report.catatan_validasi = catatan_validasi or None

    assignment_ready = False
    try:
        db.flush()
        if status_validasi == ValidationStatus.approved.value and report.status_progres == ProgressStatus.done.value:
            if all_reports_approved(db, assignment.id):
                assignment.status = ASSIGNMENT_AWAITING_FINAL_VALIDATION
                assignment_ready = True
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("report_validation_failed", laporan_id=laporan_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memvalidasi laporan")

    db.refresh(report)
    logger.info(
        "report_validated",
        laporan_id=laporan_id,
        penugasan_id=assignment.id,
        status_validasi=status_validasi,
        assignment_ready=assignment_ready,
    )
    return report, assignment_ready


def emit_validation_side_effects(laporan_id: int, validator_id: uuid.UUID) -> None:
    """Tell the reporter about the decision and log it; failures are only logged."""
    with session_scope() as db:
        try:
            row = (
                db.query(ProgressReport.pelapor_id, ProgressReport.tanggal_laporan, ProgressReport.status_validasi, Assignment.judul)
                .join(Assignment, Assignment.id == ProgressReport.penugasan_id)
                .filter(ProgressReport.id == laporan_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error("validation_side_effects_failed", laporan_id=laporan_id, error=str(e))
            return
        if not row:
            return

        pelapor_id, tanggal, status_validasi, judul = row
        verb = "disetujui" if status_validasi == ValidationStatus.approved.value else "ditolak"
        try:
            create_notification(db, pelapor_id, f'Laporan tanggal {tanggal.isoformat()} untuk "{judul}" telah {verb}')
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("validation_notification_failed", laporan_id=laporan_id, error=str(e))
        try:
            create_activity_log(
                db,
                pengguna_id=validator_id,
                aksi="Validasi Laporan",
                deskripsi=f"Laporan {laporan_id} {verb}",
                context={"laporan_id": laporan_id},
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("validation_activity_log_failed", laporan_id=laporan_id, error=str(e))
