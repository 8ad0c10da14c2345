from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import ROLE_SUPERVISOR, get_current_user, require_roles
from ..models.models import ProgressReport, Profile
from ..schemas.reports import (
    EvidencePairResponse,
    ProgressReportDetail,
    ProgressReportResponse,
    ValidateReportRequest,
    ValidationStatusResponse,
)
from ..services.geo import parse_wkt_point
from ..services.progress_reports import get_viewable_assignment
from ..services.report_validation import emit_validation_side_effects, get_report, validate_report

router = APIRouter(prefix="/laporan", tags=["laporan"])


def report_detail(report: ProgressReport) -> ProgressReportDetail:
    base = ProgressReportResponse.model_validate(report).model_dump()
    return ProgressReportDetail(
        **base,
        bukti=[EvidencePairResponse.model_validate(p) for p in report.evidence],
        lokasi=parse_wkt_point(report.titik_gps),
    )


@router.get("/{laporan_id}", response_model=ProgressReportDetail)
def get_report_detail(
    laporan_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    report = get_report(db, laporan_id)
    get_viewable_assignment(db, report.penugasan_id, user)
    return report_detail(report)


# ---------- VALIDATION ----------
@router.post("/{laporan_id}/validasi")
def post_report_validation(
    laporan_id: int,
    body: ValidateReportRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: Profile = Depends(require_roles(ROLE_SUPERVISOR)),
):
    """Supervisor approves (Disetujui) or rejects (Ditolak) a pending report"""
    report, assignment_ready = validate_report(db, laporan_id, user, body.status_validasi, body.catatan_validasi)
    background_tasks.add_task(emit_validation_side_effects, report.id, user.id)
    return {
        "success": True,
        "message": "Laporan berhasil divalidasi",
        "data": ValidationStatusResponse.model_validate(report),
        "penugasan_siap_selesai": assignment_ready,
    }


@router.get("/{laporan_id}/validasi")
def get_report_validation(
    laporan_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    report = get_report(db, laporan_id)
    get_viewable_assignment(db, report.penugasan_id, user)
    return {"data": ValidationStatusResponse.model_validate(report)}
