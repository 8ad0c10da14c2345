import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class Profile(Base):
    """User profile; identity itself lives with the auth provider"""
    __tablename__ = "profil"

    id: Mapped[uuid.UUID] = uuid_pk()
    nama: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    peran: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # Supervisor|Manager|Teknisi
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Assignment(Base):
    """Unit of field work owned by a supervisor"""
    __tablename__ = "penugasan"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    judul: Mapped[str] = mapped_column(String(150), nullable=False)
    lokasi: Mapped[Optional[str]] = mapped_column(Text)  # WKT POINT(lon lat)
    kategori: Mapped[str] = mapped_column(String(30), nullable=False)  # Rekonstruksi|Instalasi|Perawatan
    frekuensi_laporan: Mapped[str] = mapped_column(String(20), nullable=False)  # Harian|Mingguan
    supervisor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="RESTRICT"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    is_extended: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(30), default="Aktif", index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    technicians = relationship("AssignmentTechnician", back_populates="assignment", cascade="all, delete-orphan")
    reports = relationship("ProgressReport", back_populates="assignment", cascade="all, delete-orphan", order_by="ProgressReport.tanggal_laporan.desc()")
    loans = relationship("ToolLoan", back_populates="assignment", cascade="all, delete-orphan")


class AssignmentTechnician(Base):
    """Link between an assignment and a technician working on it"""
    __tablename__ = "penugasan_teknisi"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    penugasan_id: Mapped[int] = mapped_column(Integer, ForeignKey("penugasan.id", ondelete="CASCADE"), nullable=False, index=True)
    teknisi_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="CASCADE"), nullable=False, index=True)

    assignment = relationship("Assignment", back_populates="technicians")

    __table_args__ = (
        UniqueConstraint("penugasan_id", "teknisi_id", name="uq_penugasan_teknisi"),
    )


class ProgressReport(Base):
    """One technician progress submission"""
    __tablename__ = "laporan_progres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    penugasan_id: Mapped[int] = mapped_column(Integer, ForeignKey("penugasan.id", ondelete="CASCADE"), nullable=False, index=True)
    pelapor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id"), nullable=False, index=True)
    tanggal_laporan: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status_progres: Mapped[str] = mapped_column(String(30), nullable=False)  # Menunggu|Sedang Dikerjakan|Hampir Selesai|Selesai
    persentase_progres: Mapped[Optional[float]] = mapped_column(Float)
    foto_url: Mapped[str] = mapped_column(Text, nullable=False)
    catatan: Mapped[Optional[str]] = mapped_column(Text)
    titik_gps: Mapped[Optional[str]] = mapped_column(Text)  # WKT POINT(lon lat)
    status_validasi: Mapped[str] = mapped_column(String(20), nullable=False, default="Menunggu", server_default="Menunggu")  # Menunggu|Disetujui|Ditolak
    divalidasi_oleh: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="SET NULL"))
    divalidasi_pada: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    catatan_validasi: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    assignment = relationship("Assignment", back_populates="reports")
    evidence = relationship("EvidencePair", back_populates="report", cascade="all, delete-orphan", order_by="EvidencePair.id")

    __table_args__ = (
        Index("idx_laporan_penugasan_tanggal", "penugasan_id", "tanggal_laporan"),
    )


class EvidencePair(Base):
    """Before/after photo pair attached to a progress report"""
    __tablename__ = "bukti_laporan"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    laporan_id: Mapped[int] = mapped_column(Integer, ForeignKey("laporan_progres.id", ondelete="CASCADE"), nullable=False, index=True)
    pair_key: Mapped[str] = mapped_column(String(100), nullable=False)
    judul: Mapped[Optional[str]] = mapped_column(String(255))
    deskripsi: Mapped[Optional[str]] = mapped_column(Text)
    before_foto_url: Mapped[str] = mapped_column(Text, nullable=False)
    after_foto_url: Mapped[str] = mapped_column(Text, nullable=False)
    taken_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    taken_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="SET NULL"))
    metadata_json: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    report = relationship("ProgressReport", back_populates="evidence")


class Tool(Base):
    """Inventory item; 0 <= stok_tersedia <= stok_total"""
    __tablename__ = "alat"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nama: Mapped[str] = mapped_column(String(255), nullable=False)
    tipe_alat: Mapped[Optional[str]] = mapped_column(String(100))
    foto_url: Mapped[Optional[str]] = mapped_column(Text)
    stok_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stok_tersedia: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ToolLoan(Base):
    """Quantity of one tool checked out for an assignment"""
    __tablename__ = "peminjaman_alat"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    penugasan_id: Mapped[int] = mapped_column(Integer, ForeignKey("penugasan.id", ondelete="CASCADE"), nullable=False, index=True)
    alat_id: Mapped[int] = mapped_column(Integer, ForeignKey("alat.id", ondelete="RESTRICT"), nullable=False, index=True)
    jumlah: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_returned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    foto_ambil_url: Mapped[Optional[str]] = mapped_column(Text)
    foto_kembali_url: Mapped[Optional[str]] = mapped_column(Text)
    returned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    assignment = relationship("Assignment", back_populates="loans")
    tool = relationship("Tool")

    __table_args__ = (
        Index("idx_peminjaman_active", "penugasan_id", "alat_id", "is_returned"),
    )


class Notification(Base):
    """In-app notification addressed to one profile"""
    __tablename__ = "notifikasi"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    penerima_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="CASCADE"), nullable=False, index=True)
    pesan: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Belum Dibaca")  # Belum Dibaca|Dibaca
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index("idx_notifikasi_penerima_status", "penerima_id", "status"),
    )


class ActivityLog(Base):
    """Append-only activity log"""
    __tablename__ = "log_aktivitas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pengguna_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("profil.id", ondelete="SET NULL"), index=True)
    aksi: Mapped[str] = mapped_column(String(100), nullable=False)
    deskripsi: Mapped[Optional[str]] = mapped_column(Text)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification
