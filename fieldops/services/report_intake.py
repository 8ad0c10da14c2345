"""
Progress report intake validation.

Rules are applied in a fixed order and the first failure wins. Phase one
(``validate_submission``) needs nothing but the payload and runs before any
database access. Phase two (``validate_tool_photos``) depends on whether this
is the first report of the assignment, so it runs after the latest-report
lookup but still before anything is written.

Both phases return either a sanitized ``ReportSubmission`` or a ``Rejected``
carrying the Indonesian message shown to the caller.
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Union

from ..config import settings
from ..schemas.reports import (
    EvidencePairIn,
    EvidencePhoto,
    PERCENTAGE_BANDS,
    ProgressStatus,
    ReportSubmission,
    ToolPhoto,
)


@dataclass(frozen=True)
class Rejected:
    reason: str


IntakeResult = Union[ReportSubmission, Rejected]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_percentage(value: Any) -> Optional[float]:
    """Coerce a percentage the way a loosely typed client sends it; None if not numeric."""
    if _is_number(value):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def percentage_in_band(status: ProgressStatus, percentage: float) -> bool:
    low, high = PERCENTAGE_BANDS[status]
    return low <= percentage <= high


def _is_optional_text(value: Any) -> bool:
    return value is None or isinstance(value, str)


def _sanitize_pairs(raw_pairs: List[Any]) -> Union[List[EvidencePairIn], Rejected]:
    pairs = []
    for index, pair in enumerate(raw_pairs, start=1):
        if not isinstance(pair, dict):
            return Rejected(f"Format bukti foto ke-{index} tidak valid")
        before = pair.get("before")
        after = pair.get("after")
        before_url = before.get("foto_url") if isinstance(before, dict) else None
        after_url = after.get("foto_url") if isinstance(after, dict) else None
        if not before_url or not after_url or not isinstance(before_url, str) or not isinstance(after_url, str):
            return Rejected(f"Pasangan foto ke-{index} belum lengkap (before & after wajib diisi)")

        # Free-text fields and capture times must be strings when present
        text_fields = (pair.get("judul"), pair.get("deskripsi"), before.get("taken_at"), after.get("taken_at"))
        if not all(_is_optional_text(value) for value in text_fields):
            return Rejected(f"Format bukti foto ke-{index} tidak valid")
        pair_key = pair.get("pair_key")
        if pair_key is not None and (isinstance(pair_key, bool) or not isinstance(pair_key, (str, int))):
            return Rejected(f"Format bukti foto ke-{index} tidak valid")

        pairs.append(
            EvidencePairIn(
                pair_key=str(pair_key) if pair_key else None,
                judul=pair.get("judul") or None,
                deskripsi=pair.get("deskripsi") or None,
                before=EvidencePhoto(
                    foto_url=before_url,
                    taken_at=before.get("taken_at") or None,
                    metadata=before.get("metadata") if isinstance(before.get("metadata"), dict) else None,
                ),
                after=EvidencePhoto(
                    foto_url=after_url,
                    taken_at=after.get("taken_at") or None,
                    metadata=after.get("metadata") if isinstance(after.get("metadata"), dict) else None,
                ),
            )
        )
    return pairs


def validate_submission(payload: Dict[str, Any]) -> IntakeResult:
    """Apply the payload-only rules (status, photo, percentage, evidence pairs)."""
    raw_status = payload.get("status_progres")
    try:
        status = ProgressStatus(raw_status)
    except (TypeError, ValueError):
        return Rejected("Status progres tidak valid")

    foto_url = payload.get("foto_url")
    if not foto_url or not isinstance(foto_url, str):
        return Rejected("Foto bukti wajib diunggah")

    percentage = None
    raw_percentage = payload.get("persentase_progres")
    if raw_percentage is not None:
        percentage = _parse_percentage(raw_percentage)
        if percentage is None:
            return Rejected("Persentase harus berupa angka")
        if not percentage_in_band(status, percentage):
            return Rejected(f'Persentase tidak sesuai dengan status "{status.value}"')

    max_pairs = settings.max_pair_count
    raw_pairs = payload.get("pairs")
    if status == ProgressStatus.done and (not isinstance(raw_pairs, list) or len(raw_pairs) == 0):
        return Rejected("Minimal satu bukti foto before/after wajib untuk status Selesai")
    # Only a final report requires pairs; elsewhere a non-list value is ignored
    if not isinstance(raw_pairs, list):
        raw_pairs = None

    pairs: List[EvidencePairIn] = []
    if raw_pairs:
        if len(raw_pairs) > max_pairs:
            return Rejected(f"Maksimal {max_pairs} bukti foto per laporan")
        sanitized = _sanitize_pairs(raw_pairs)
        if isinstance(sanitized, Rejected):
            return sanitized
        pairs = sanitized

    report_date = None
    raw_date = payload.get("tanggal_laporan")
    if raw_date:
        try:
            report_date = date.fromisoformat(str(raw_date)[:10])
        except ValueError:
            return Rejected("Tanggal laporan tidak valid")

    latitude = payload.get("latitude")
    longitude = payload.get("longitude")
    catatan = payload.get("catatan")

    return ReportSubmission(
        tanggal_laporan=report_date,
        status_progres=status,
        persentase_progres=percentage,
        foto_url=foto_url,
        catatan=catatan if isinstance(catatan, str) else None,
        latitude=float(latitude) if _is_number(latitude) else None,
        longitude=float(longitude) if _is_number(longitude) else None,
        return_tools=bool(payload.get("return_tools")),
        pairs=pairs,
        tool_photos=payload.get("tool_photos"),
        return_tool_photos=payload.get("return_tool_photos"),
    )


def _sanitize_tool_photos(raw: Any, invalid_format: str, incomplete: str) -> Union[List[ToolPhoto], Rejected]:
    if not isinstance(raw, list):
        return Rejected(invalid_format)
    photos = []
    for entry in raw:
        if not isinstance(entry, dict):
            return Rejected(incomplete)
        alat_id = entry.get("alat_id")
        foto_url = entry.get("foto_url")
        if not alat_id or not foto_url or not isinstance(foto_url, str):
            return Rejected(incomplete)
        try:
            photos.append(ToolPhoto(alat_id=int(alat_id), foto_url=foto_url))
        except (TypeError, ValueError):
            return Rejected(incomplete)
    return photos


def validate_tool_photos(submission: ReportSubmission, *, is_first_report: bool) -> IntakeResult:
    """
    Apply the tool photo rules.

    Pickup photos only count on the first report of an assignment; return
    photos only when finalizing with auto-return requested. Photos outside
    those cases are dropped from the returned submission.
    """
    tool_photos = None
    if is_first_report and submission.tool_photos is not None:
        tool_photos = _sanitize_tool_photos(
            submission.tool_photos,
            "Format foto pengambilan alat tidak valid",
            "Foto pengambilan alat tidak lengkap",
        )
        if isinstance(tool_photos, Rejected):
            return tool_photos

    return_photos = None
    if submission.should_auto_return and submission.return_tool_photos is not None:
        return_photos = _sanitize_tool_photos(
            submission.return_tool_photos,
            "Format foto pengembalian alat tidak valid",
            "Foto pengembalian alat tidak lengkap",
        )
        if isinstance(return_photos, Rejected):
            return return_photos

    return submission.model_copy(update={"tool_photos": tool_photos, "return_tool_photos": return_photos})
