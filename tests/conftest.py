import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from fieldops.auth.security import create_access_token
from fieldops.db import Base, SessionLocal
from fieldops.main import app
from fieldops.models.models import (
    Assignment,
    AssignmentTechnician,
    Profile,
    Tool,
    ToolLoan,
)


@pytest.fixture()
def test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    SessionLocal.configure(bind=engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(test_engine):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(test_engine):
    return TestClient(app)


def _profile(db, nama: str, email: str, peran: str) -> Profile:
    profile = Profile(nama=nama, email=email, peran=peran)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture()
def supervisor(db):
    return _profile(db, "Sari Supervisor", "spv@example.com", "Supervisor")


@pytest.fixture()
def other_supervisor(db):
    return _profile(db, "Rudi Supervisor", "spv2@example.com", "Supervisor")


@pytest.fixture()
def manager(db):
    return _profile(db, "Maya Manager", "manager@example.com", "Manager")


@pytest.fixture()
def technician(db):
    return _profile(db, "Budi Teknisi", "budi@example.com", "Teknisi")


@pytest.fixture()
def outsider(db):
    return _profile(db, "Joko Teknisi", "joko@example.com", "Teknisi")


def make_assignment(db, supervisor, technicians, frekuensi="Harian", judul="Perawatan Jaringan Sektor 3"):
    assignment = Assignment(
        judul=judul,
        kategori="Perawatan",
        frekuensi_laporan=frekuensi,
        supervisor_id=supervisor.id,
        start_date=date(2025, 3, 1),
    )
    db.add(assignment)
    db.flush()
    for tek in technicians:
        db.add(AssignmentTechnician(penugasan_id=assignment.id, teknisi_id=tek.id))
    db.commit()
    db.refresh(assignment)
    return assignment


@pytest.fixture()
def assignment(db, supervisor, technician):
    return make_assignment(db, supervisor, [technician])


@pytest.fixture()
def loans(db, assignment):
    """Two tools on loan: 2 drills (3 of 5 left) and 1 ladder (2 of 3 left)."""
    drill = Tool(nama="Bor Listrik", stok_total=5, stok_tersedia=3)
    ladder = Tool(nama="Tangga Lipat", stok_total=3, stok_tersedia=2)
    db.add_all([drill, ladder])
    db.flush()
    drill_loan = ToolLoan(penugasan_id=assignment.id, alat_id=drill.id, jumlah=2)
    ladder_loan = ToolLoan(penugasan_id=assignment.id, alat_id=ladder.id, jumlah=1)
    db.add_all([drill_loan, ladder_loan])
    db.commit()
    return {"drill": drill, "ladder": ladder, "drill_loan": drill_loan, "ladder_loan": ladder_loan}


def auth_headers(profile: Profile) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(profile.id), profile.peran)}"}


def make_pair(n: int = 1) -> dict:
    return {
        "judul": f"Titik {n}",
        "before": {"foto_url": f"https://cdn.example.com/before-{n}.jpg"},
        "after": {"foto_url": f"https://cdn.example.com/after-{n}.jpg"},
    }
