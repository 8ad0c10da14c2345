"""
Progress report submission workflow.

validate -> authorize -> persist report -> schedule drift -> tool pickup /
auto-return -> evidence pairs -> count. The supervisor notification and the
activity log entry are emitted afterwards as a best-effort side channel.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import ROLE_MANAGER
from ..db import session_scope
from ..models.models import Assignment, AssignmentTechnician, ProgressReport, Profile
from .audit import create_activity_log
from .evidence import save_evidence_pairs
from .geo import create_wkt_point
from .notifications import create_notification
from .report_intake import Rejected, validate_submission, validate_tool_photos
from .schedule import schedule_drift_warning, today_local
from .tool_lifecycle import attach_pickup_photos, auto_return_tools, returned_units

logger = structlog.get_logger(__name__)


@dataclass
class SubmissionOutcome:
    report: ProgressReport
    warning: Optional[str]
    total_reports: int
    locked: bool
    auto_returned_tools: int
    saved_pair_count: int


def is_assigned_technician(db: Session, penugasan_id: int, user_id: uuid.UUID) -> bool:
    link = db.query(AssignmentTechnician.id).filter(
        AssignmentTechnician.penugasan_id == penugasan_id,
        AssignmentTechnician.teknisi_id == user_id,
    ).first()
    return link is not None


def get_active_assignment(db: Session, penugasan_id: int) -> Optional[Assignment]:
    return db.query(Assignment).filter(
        Assignment.id == penugasan_id,
        Assignment.is_deleted == False,  # noqa: E712
    ).first()


def get_technician_assignment(db: Session, penugasan_id: int, user_id: uuid.UUID) -> Assignment:
    """
    Load an assignment the caller works on.

    Both "not linked" and "does not exist" answer 404 so unauthorized callers
    cannot tell which assignments exist.
    """
    if not is_assigned_technician(db, penugasan_id, user_id):
        raise HTTPException(status_code=404, detail="Penugasan tidak ditemukan atau Anda tidak ditugaskan")
    assignment = get_active_assignment(db, penugasan_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Penugasan tidak ditemukan")
    return assignment


def get_viewable_assignment(db: Session, penugasan_id: int, user: Profile) -> Assignment:
    """Assignment readable by its technicians, its supervisor, or any manager."""
    assignment = get_active_assignment(db, penugasan_id)
    if not assignment:
        raise HTTPException(status_code=404, detail="Penugasan tidak ditemukan")
    if user.peran == ROLE_MANAGER or assignment.supervisor_id == user.id:
        return assignment
    if is_assigned_technician(db, penugasan_id, user.id):
        return assignment
    raise HTTPException(status_code=404, detail="Penugasan tidak ditemukan atau Anda tidak ditugaskan")


def get_latest_report(db: Session, penugasan_id: int) -> Optional[ProgressReport]:
    return (
        db.query(ProgressReport)
        .filter(ProgressReport.penugasan_id == penugasan_id)
        .order_by(ProgressReport.tanggal_laporan.desc(), ProgressReport.id.desc())
        .first()
    )


def count_reports(db: Session, penugasan_id: int) -> int:
    return db.query(func.count(ProgressReport.id)).filter(ProgressReport.penugasan_id == penugasan_id).scalar() or 0


def list_reports(db: Session, penugasan_id: int) -> List[ProgressReport]:
    return (
        db.query(ProgressReport)
        .filter(ProgressReport.penugasan_id == penugasan_id)
        .order_by(ProgressReport.tanggal_laporan.desc(), ProgressReport.id.desc())
        .all()
    )


def submit_progress_report(
    db: Session,
    penugasan_id: int,
    user: Profile,
    payload: Dict[str, Any],
) -> SubmissionOutcome:
    result = validate_submission(payload)
    if isinstance(result, Rejected):
        raise HTTPException(status_code=400, detail=result.reason)

    assignment = get_technician_assignment(db, penugasan_id, user.id)
    frequency = assignment.frekuensi_laporan

    latest = get_latest_report(db, penugasan_id)
    is_first_report = latest is None
    previous_date: Optional[date] = latest.tanggal_laporan if latest else None

    result = validate_tool_photos(result, is_first_report=is_first_report)
    if isinstance(result, Rejected):
        raise HTTPException(status_code=400, detail=result.reason)
    submission = result

    report_date = submission.tanggal_laporan or today_local()
    report = ProgressReport(
        penugasan_id=penugasan_id,
        pelapor_id=user.id,
        tanggal_laporan=report_date,
        persentase_progres=submission.persentase_progres,
        status_progres=submission.status_progres.value,
        foto_url=submission.foto_url,
        catatan=submission.catatan,
        titik_gps=create_wkt_point(submission.latitude, submission.longitude),
    )
    try:
        db.add(report)
        db.commit()
        db.refresh(report)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("progress_report_insert_failed", penugasan_id=penugasan_id, pelapor_id=str(user.id), error=str(e))
        raise HTTPException(status_code=500, detail="Gagal mengirim laporan")

    warning = schedule_drift_warning(previous_date, report_date, frequency)

    if is_first_report and submission.tool_photos:
        attach_pickup_photos(db, penugasan_id, submission.tool_photos)

    auto_returned = 0
    if submission.should_auto_return:
        outcomes = auto_return_tools(db, penugasan_id, submission.foto_url, submission.return_tool_photos)
        auto_returned = returned_units(outcomes)
        skipped = [o.loan_id for o in outcomes if not o.returned]
        if skipped:
            logger.warning("tool_auto_return_partial", penugasan_id=penugasan_id, skipped_loan_ids=skipped)

    saved_pairs = save_evidence_pairs(db, report.id, submission.pairs, user.id)

    total = count_reports(db, penugasan_id)
    logger.info(
        "progress_report_submitted",
        penugasan_id=penugasan_id,
        laporan_id=report.id,
        status_progres=report.status_progres,
        first_report=is_first_report,
        auto_returned_tools=auto_returned,
        saved_pair_count=saved_pairs,
    )
    return SubmissionOutcome(
        report=report,
        warning=warning,
        total_reports=total,
        locked=submission.is_final,
        auto_returned_tools=auto_returned,
        saved_pair_count=saved_pairs,
    )


def emit_report_side_effects(penugasan_id: int, pelapor_id: uuid.UUID, is_final: bool, report_date: date) -> None:
    """
    Notify the supervisor and write the activity log entry for a new report.

    Runs after the response; failures are logged and never reach the caller.
    """
    with session_scope() as db:
        try:
            assignment = db.query(Assignment.supervisor_id, Assignment.judul).filter(Assignment.id == penugasan_id).first()
            if assignment:
                supervisor_id, judul = assignment
                pesan = (
                    f'Laporan FINAL baru untuk "{judul}" telah dibuat'
                    if is_final
                    else f'Laporan progres baru untuk "{judul}" telah dibuat'
                )
                create_notification(db, supervisor_id, pesan)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("report_notification_failed", penugasan_id=penugasan_id, error=str(e))

        try:
            deskripsi = (
                f"Penugasan {penugasan_id} - Laporan final dibuat"
                if is_final
                else f"Penugasan {penugasan_id} tanggal {report_date.isoformat()} - Laporan progres dibuat"
            )
            create_activity_log(
                db,
                pengguna_id=pelapor_id,
                aksi="Laporan Progres",
                deskripsi=deskripsi,
                context={"penugasan_id": penugasan_id},
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("report_activity_log_failed", penugasan_id=penugasan_id, error=str(e))
