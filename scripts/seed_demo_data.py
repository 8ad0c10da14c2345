"""
Seed the local database with a supervisor, two technicians, an assignment,
tools and active tool loans, then print bearer tokens for each profile.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: profiles are matched by email, the assignment by
title and tools by name.
"""

from datetime import date, timedelta

from fieldops.db import SessionLocal, Base, engine
from fieldops.models.models import (
    Assignment,
    AssignmentTechnician,
    Profile,
    Tool,
    ToolLoan,
)
from fieldops.auth.security import create_access_token


def ensure_profile(session, nama: str, email: str, peran: str) -> Profile:
    profile = session.query(Profile).filter(Profile.email == email).first()
    if profile:
        profile.nama = nama
        profile.peran = peran
        return profile
    profile = Profile(nama=nama, email=email, peran=peran)
    session.add(profile)
    session.flush()
    return profile


def ensure_tool(session, nama: str, stok_total: int) -> Tool:
    tool = session.query(Tool).filter(Tool.nama == nama).first()
    if tool:
        return tool
    tool = Tool(nama=nama, stok_total=stok_total, stok_tersedia=stok_total)
    session.add(tool)
    session.flush()
    return tool


def ensure_loan(session, assignment: Assignment, tool: Tool, jumlah: int) -> ToolLoan:
    loan = session.query(ToolLoan).filter(
        ToolLoan.penugasan_id == assignment.id,
        ToolLoan.alat_id == tool.id,
        ToolLoan.is_returned == False,  # noqa: E712
    ).first()
    if loan:
        return loan
    loan = ToolLoan(penugasan_id=assignment.id, alat_id=tool.id, jumlah=jumlah)
    tool.stok_tersedia = max(0, tool.stok_tersedia - jumlah)
    session.add(loan)
    session.flush()
    return loan


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        spv = ensure_profile(session, "Sari Supervisor", "spv@example.com", "Supervisor")
        tek1 = ensure_profile(session, "Budi Teknisi", "budi@example.com", "Teknisi")
        tek2 = ensure_profile(session, "Andi Teknisi", "andi@example.com", "Teknisi")
        ensure_profile(session, "Maya Manager", "manager@example.com", "Manager")

        assignment = session.query(Assignment).filter(Assignment.judul == "Perawatan Jaringan Sektor 3").first()
        if not assignment:
            assignment = Assignment(
                judul="Perawatan Jaringan Sektor 3",
                lokasi="POINT(106.8456 -6.2088)",
                kategori="Perawatan",
                frekuensi_laporan="Harian",
                supervisor_id=spv.id,
                start_date=date.today() - timedelta(days=2),
                end_date=date.today() + timedelta(days=12),
            )
            session.add(assignment)
            session.flush()
            for tek in (tek1, tek2):
                session.add(AssignmentTechnician(penugasan_id=assignment.id, teknisi_id=tek.id))

        bor = ensure_tool(session, "Bor Listrik", 5)
        tangga = ensure_tool(session, "Tangga Lipat", 3)
        ensure_loan(session, assignment, bor, 2)
        ensure_loan(session, assignment, tangga, 1)

        session.commit()

        print(f"Assignment id: {assignment.id}")
        for profile in (spv, tek1, tek2):
            print(f"{profile.peran:<10} {profile.email:<20} {create_access_token(str(profile.id), profile.peran)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
