"""
Pytest fixtures for the danus test suite.

Provides:
- an in-memory SQLite `Database` shared by every session of a test (StaticPool)
- a deterministic clock that advances one second per reading
- seeded users (seller, admin, second seller) and barang
- service fixtures wired to the same database and clock
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from database import Database
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.Barang import Barang
from models.Keuangan import DetailKeuangan, Keuangan, SALDO_ID
from models.StokHarian import StokHarian
from models.User import User, UserRoleEnum
from services.ambilbarang_services import AmbilBarangService
from services.detailsetor_services import DetailSetorService
from services.keuangan_services import KeuanganService
from services.setor_services import SetorService
from services.stok_services import StokService
from services.user_services import UserService

SELLER_ID = 1
ADMIN_ID = 2
SELLER_2_ID = 3
RISOL_ID = 1
PASTEL_ID = 2


class FixedClock:
    """Starts at a fixed instant and moves forward one second per `now()`."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value

    def today(self) -> date:
        return self.current.date()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 10, 8, 0, 0))


@pytest.fixture
def database():
    db = Database("sqlite://", poolclass=StaticPool)
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


def seed_database(database, clock):
    """Users and barang every scenario starts from."""
    with database.transaction() as db:
        db.add_all([
            User(id=SELLER_ID, username="andi", nama_lengkap="Andi Pratama", role=UserRoleEnum.USER,
                 created_at=clock.now()),
            User(id=ADMIN_ID, username="sari", nama_lengkap="Sari Admin", role=UserRoleEnum.ADMIN,
                 created_at=clock.now()),
            User(id=SELLER_2_ID, username="budi", nama_lengkap="Budi Santoso", role=UserRoleEnum.USER,
                 created_at=clock.now()),
        ])
        db.add_all([
            Barang(id=RISOL_ID, nama="Risol", created_at=clock.now()),
            Barang(id=PASTEL_ID, nama="Pastel", created_at=clock.now()),
        ])


@pytest.fixture(autouse=True)
def seed(database, clock):
    seed_database(database, clock)


@pytest.fixture
def stok_service(database, clock):
    return StokService(database, clock)


@pytest.fixture
def stok_service_negative(database, clock):
    return StokService(database, clock, allow_negative_saldo=True)


@pytest.fixture
def ambil_barang_service(database, clock):
    return AmbilBarangService(database, clock)


@pytest.fixture
def setor_service(database, clock):
    return SetorService(database, clock)


@pytest.fixture
def detail_setor_service(database, clock):
    return DetailSetorService(database, clock)


@pytest.fixture
def keuangan_service(database, clock):
    return KeuanganService(database, clock)


@pytest.fixture
def user_service(database, clock):
    return UserService(database, clock)


@pytest.fixture
def make_stok(stok_service_negative):
    """Create a stok batch without touching the saldo (modal defaults to 0)."""

    def _make(harga="1000", stok=10, barang_id=RISOL_ID, modal="0"):
        return stok_service_negative.create_stok_harian(
            barang_id=barang_id,
            harga=Decimal(harga),
            stok=stok,
            modal=Decimal(modal),
        )

    return _make


@pytest.fixture
def ambil(ambil_barang_service):
    """Allocate `items` [(stok_id, qty), ...] to a seller."""

    def _ambil(items, user_id=SELLER_ID, admin_id=ADMIN_ID):
        return ambil_barang_service.create_ambil_barang(
            user_id=user_id,
            setor_kepada_id=admin_id,
            items=items,
        )

    return _ambil


@pytest.fixture
def state(database):
    """Direct reads of persisted state, bypassing the services."""

    class State:
        def saldo(self) -> Decimal:
            with database.session() as db:
                row = db.get(Keuangan, SALDO_ID)
                return Decimal(row.total_saldo) if row else Decimal("0")

        def ledger_sum(self) -> Decimal:
            with database.session() as db:
                entries = db.execute(select(DetailKeuangan)).scalars().all()
                return sum((e.signed_nominal for e in entries), Decimal("0"))

        def ledger_count(self) -> int:
            with database.session() as db:
                return len(db.execute(select(DetailKeuangan.id)).all())

        def stok(self, stok_id: int) -> int:
            with database.session() as db:
                return db.get(StokHarian, stok_id).stok

        def detail(self, detail_id: int):
            with database.session() as db:
                return db.get(DetailSetor, detail_id)

        def ambil_barang(self, ambil_barang_id: int):
            with database.session() as db:
                return db.get(AmbilBarang, ambil_barang_id)

        def details_of(self, ambil_barang_id: int):
            with database.session() as db:
                return db.execute(
                    select(DetailSetor)
                    .where(DetailSetor.ambil_barang_id == ambil_barang_id)
                    .order_by(DetailSetor.id)
                ).scalars().all()

    return State()
