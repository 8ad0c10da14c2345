import uuid
from datetime import date, datetime
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel


# Enums
class ProgressStatus(str, Enum):
    waiting = "Menunggu"
    in_progress = "Sedang Dikerjakan"
    nearly_done = "Hampir Selesai"
    done = "Selesai"


class ReportFrequency(str, Enum):
    daily = "Harian"
    weekly = "Mingguan"


class ValidationStatus(str, Enum):
    pending = "Menunggu"
    approved = "Disetujui"
    rejected = "Ditolak"


# Inclusive percentage band allowed for each progress status
PERCENTAGE_BANDS = {
    ProgressStatus.waiting: (0, 10),
    ProgressStatus.in_progress: (11, 75),
    ProgressStatus.nearly_done: (76, 99),
    ProgressStatus.done: (100, 100),
}

FREQUENCY_DAYS = {
    ReportFrequency.daily: 1,
    ReportFrequency.weekly: 7,
}


# Submission (sanitized by services.report_intake)
class EvidencePhoto(BaseModel):
    foto_url: str
    taken_at: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class EvidencePairIn(BaseModel):
    pair_key: Optional[str] = None
    judul: Optional[str] = None
    deskripsi: Optional[str] = None
    before: EvidencePhoto
    after: EvidencePhoto


class ToolPhoto(BaseModel):
    alat_id: int
    foto_url: str


class ReportSubmission(BaseModel):
    tanggal_laporan: Optional[date] = None
    status_progres: ProgressStatus
    persentase_progres: Optional[float] = None
    foto_url: str
    catatan: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    return_tools: bool = False
    pairs: List[EvidencePairIn] = []
    tool_photos: Optional[Any] = None
    return_tool_photos: Optional[Any] = None

    @property
    def is_final(self) -> bool:
        return self.status_progres == ProgressStatus.done

    @property
    def should_auto_return(self) -> bool:
        return self.is_final and self.return_tools


# Responses
class EvidencePairResponse(BaseModel):
    id: int
    laporan_id: int
    pair_key: str
    judul: Optional[str] = None
    deskripsi: Optional[str] = None
    before_foto_url: str
    after_foto_url: str
    taken_at: Optional[datetime] = None
    taken_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgressReportResponse(BaseModel):
    id: int
    penugasan_id: int
    pelapor_id: uuid.UUID
    tanggal_laporan: date
    status_progres: str
    persentase_progres: Optional[float] = None
    foto_url: str
    catatan: Optional[str] = None
    titik_gps: Optional[str] = None
    status_validasi: str
    divalidasi_oleh: Optional[uuid.UUID] = None
    divalidasi_pada: Optional[datetime] = None
    catatan_validasi: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgressReportDetail(ProgressReportResponse):
    bukti: List[EvidencePairResponse] = []
    lokasi: Optional[Dict[str, float]] = None


class SubmitReportResponse(BaseModel):
    message: str
    report: ProgressReportResponse
    warning: Optional[str] = None
    total_reports: int
    locked: bool
    auto_returned_tools: int
    saved_pair_count: int


class NextReportDue(BaseModel):
    due_date: date
    overdue: bool


class ReportListResponse(BaseModel):
    data: List[ProgressReportDetail]
    total_reports: int
    next_report: NextReportDue


class ValidateReportRequest(BaseModel):
    status_validasi: Optional[str] = None
    catatan_validasi: Optional[str] = None


class ValidationStatusResponse(BaseModel):
    id: int
    status_validasi: str
    divalidasi_oleh: Optional[uuid.UUID] = None
    divalidasi_pada: Optional[datetime] = None
    catatan_validasi: Optional[str] = None

    class Config:
        from_attributes = True


class ToolReturnRequest(BaseModel):
    foto_url: Optional[str] = None


class NotificationResponse(BaseModel):
    id: int
    penerima_id: uuid.UUID
    pesan: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MarkNotificationsRead(BaseModel):
    ids: Optional[List[int]] = None
