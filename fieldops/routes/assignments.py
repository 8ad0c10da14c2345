from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user
from ..models.models import Profile
from ..schemas.reports import (
    NextReportDue,
    ProgressReportResponse,
    ReportListResponse,
    SubmitReportResponse,
    ToolReturnRequest,
)
from ..services.progress_reports import (
    emit_report_side_effects,
    get_technician_assignment,
    get_viewable_assignment,
    list_reports,
    submit_progress_report,
)
from ..services.schedule import next_report_deadline
from ..services.tool_lifecycle import emit_tool_return_log, return_single_tool
from .reports import report_detail

router = APIRouter(prefix="/penugasan", tags=["penugasan"])


# ---------- PROGRESS REPORTS ----------
@router.post("/{penugasan_id}/laporan", response_model=SubmitReportResponse)
def submit_report(
    penugasan_id: int,
    background_tasks: BackgroundTasks,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """Submit a progress report for an assignment the caller works on."""
    outcome = submit_progress_report(db, penugasan_id, user, payload)
    background_tasks.add_task(
        emit_report_side_effects,
        penugasan_id,
        user.id,
        outcome.locked,
        outcome.report.tanggal_laporan,
    )
    return SubmitReportResponse(
        message="Laporan disimpan",
        report=ProgressReportResponse.model_validate(outcome.report),
        warning=outcome.warning,
        total_reports=outcome.total_reports,
        locked=outcome.locked,
        auto_returned_tools=outcome.auto_returned_tools,
        saved_pair_count=outcome.saved_pair_count,
    )


@router.get("/{penugasan_id}/laporan", response_model=ReportListResponse)
def get_assignment_reports(
    penugasan_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """List an assignment's reports, newest first, with the next due date"""
    assignment = get_viewable_assignment(db, penugasan_id, user)
    reports = list_reports(db, penugasan_id)
    due_date, overdue = next_report_deadline(
        assignment.frekuensi_laporan,
        reports[0].tanggal_laporan if reports else None,
        assignment.start_date,
    )
    return ReportListResponse(
        data=[report_detail(r) for r in reports],
        total_reports=len(reports),
        next_report=NextReportDue(due_date=due_date, overdue=overdue),
    )


# ---------- TOOL LOANS ----------
@router.post("/{penugasan_id}/alat/{alat_id}/return")
def return_tool(
    penugasan_id: int,
    alat_id: int,
    body: ToolReturnRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
):
    """Return one borrowed tool with a return photo"""
    if not body.foto_url:
        raise HTTPException(status_code=400, detail="Foto pengembalian wajib diunggah")
    get_technician_assignment(db, penugasan_id, user.id)
    loan = return_single_tool(db, penugasan_id, alat_id, body.foto_url)
    background_tasks.add_task(
        emit_tool_return_log,
        user.id,
        penugasan_id,
        alat_id,
    )
    return {"message": "Alat dikembalikan", "peminjaman_id": loan.id, "returned_at": loan.returned_at}


