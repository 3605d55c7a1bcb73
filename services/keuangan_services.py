from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import delete, select, update, func, desc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from database import Database
from errors import NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.AuditTrail import AuditEntityEnum
from models.Keuangan import Keuangan, DetailKeuangan, TipeKeuanganEnum, SALDO_ID
from schemas.KeuanganSchemas import (
    SaldoOut, DetailKeuanganOut, DetailKeuanganDetail, PenyetorOut, TransaksiResult,
    RingkasanTipe, LaporanHarian, LaporanBulanan,
)
from schemas.PaginatedResponseSchemas import PaginatedResponse
from services.audit_services import AuditService
from utils import day_bounds, month_bounds, parse_month, page_to_offset

logger = logging.getLogger(__name__)


def signed_amount(tipe: TipeKeuanganEnum, nominal: Decimal) -> Decimal:
    nominal = Decimal(nominal)
    return nominal if tipe == TipeKeuanganEnum.INCOME else -nominal


class KeuanganStore:
    """
    Ledger store: the saldo singleton plus the append-only detail_keuangans.

    Every mutating method expects to run inside `Database.transaction()`;
    the saldo row is the lock every ledger writer serializes on.
    """

    @staticmethod
    def ensure_saldo(db: Session) -> None:
        """Create the saldo row (id=1, total 0) if it does not exist yet."""
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(Keuangan).values(id=SALDO_ID, total_saldo=Decimal("0"))
        elif dialect == "sqlite":
            stmt = sqlite_insert(Keuangan).values(id=SALDO_ID, total_saldo=Decimal("0"))
        else:
            if db.get(Keuangan, SALDO_ID) is None:
                db.add(Keuangan(id=SALDO_ID, total_saldo=Decimal("0")))
                db.flush()
            return
        db.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))

    @staticmethod
    def get_saldo(db: Session, lock: bool = False) -> Keuangan:
        query = select(Keuangan).where(Keuangan.id == SALDO_ID)
        if lock:
            query = query.with_for_update()
        saldo = db.execute(query.execution_options(populate_existing=True)).scalar_one_or_none()
        if saldo is None:
            KeuanganStore.ensure_saldo(db)
            saldo = db.execute(query.execution_options(populate_existing=True)).scalar_one()
        return saldo

    @staticmethod
    def update_saldo(db: Session, delta: Decimal) -> Keuangan:
        """Atomic `total_saldo = total_saldo + delta`."""
        result = db.execute(
            update(Keuangan)
            .where(Keuangan.id == SALDO_ID)
            .values(total_saldo=Keuangan.total_saldo + Decimal(delta))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            KeuanganStore.ensure_saldo(db)
            db.execute(
                update(Keuangan)
                .where(Keuangan.id == SALDO_ID)
                .values(total_saldo=Keuangan.total_saldo + Decimal(delta))
                .execution_options(synchronize_session=False)
            )
        return KeuanganStore.get_saldo(db)

    @staticmethod
    def ensure_saldo_cukup(db: Session, amount: Decimal, allow_negative: bool = False) -> Keuangan:
        saldo = KeuanganStore.get_saldo(db, lock=True)
        if not allow_negative and Decimal(saldo.total_saldo) < Decimal(amount):
            raise ValidationError(
                f"Saldo tidak mencukupi. Saldo saat ini: Rp{saldo.total_saldo}, dibutuhkan: Rp{amount}"
            )
        return saldo

    @staticmethod
    def create_detail_keuangan(
            db: Session,
            *,
            title: str,
            tipe: TipeKeuanganEnum,
            nominal: Decimal,
            created_at: datetime,
            keterangan: Optional[str] = None,
            detail_setor_id: Optional[int] = None,
    ) -> DetailKeuangan:
        """Append a ledger row. Callers must adjust the saldo in the same transaction."""
        if Decimal(nominal) <= 0:
            raise ValidationError("Nominal must be greater than 0")
        entry = DetailKeuangan(
            detail_setor_id=detail_setor_id,
            title=title,
            tipe=tipe,
            nominal=Decimal(nominal),
            keterangan=keterangan,
            created_at=created_at,
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def post_entry(
            db: Session,
            *,
            title: str,
            tipe: TipeKeuanganEnum,
            nominal: Decimal,
            created_at: datetime,
            keterangan: Optional[str] = None,
            detail_setor_id: Optional[int] = None,
    ) -> Tuple[DetailKeuangan, Keuangan]:
        """Append one entry and move the saldo by its signed nominal."""
        entry = KeuanganStore.create_detail_keuangan(
            db,
            title=title,
            tipe=tipe,
            nominal=nominal,
            created_at=created_at,
            keterangan=keterangan,
            detail_setor_id=detail_setor_id,
        )
        saldo = KeuanganStore.update_saldo(db, signed_amount(tipe, nominal))
        return entry, saldo

    @staticmethod
    def get_last_transaction_id(db: Session) -> Optional[int]:
        return db.execute(select(func.max(DetailKeuangan.id))).scalar()

    @staticmethod
    def get_entry(db: Session, entry_id: int, lock: bool = False) -> Optional[DetailKeuangan]:
        query = select(DetailKeuangan).where(DetailKeuangan.id == entry_id)
        if lock:
            query = query.with_for_update()
        return db.execute(query).scalar_one_or_none()

    @staticmethod
    def check_deletable(db: Session, entry: DetailKeuangan) -> None:
        if not entry.is_manual:
            raise ValidationError("Cannot delete a ledger entry generated by a setor")
        if entry.id != KeuanganStore.get_last_transaction_id(db):
            raise ValidationError("Only the most recent ledger entry can be deleted")

    @staticmethod
    def delete_entry(db: Session, entry_id: int) -> Keuangan:
        """Reverse the entry's effect on the saldo, then delete it."""
        KeuanganStore.get_saldo(db, lock=True)
        entry = KeuanganStore.get_entry(db, entry_id, lock=True)
        if entry is None:
            raise NotFoundError(f"Ledger entry with ID {entry_id} not found")
        KeuanganStore.check_deletable(db, entry)

        deleted = db.execute(
            delete(DetailKeuangan)
            .where(DetailKeuangan.id == entry_id, DetailKeuangan.detail_setor_id.is_(None))
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted == 0:
            raise ValidationError("Cannot delete a ledger entry generated by a setor")
        db.expunge(entry)
        return KeuanganStore.update_saldo(db, -entry.signed_nominal)

    @staticmethod
    def _ordered():
        return select(DetailKeuangan).order_by(desc(DetailKeuangan.created_at), desc(DetailKeuangan.id))

    @staticmethod
    def list_entries(db: Session, page: int = 1, limit: int = 20) -> Tuple[List[DetailKeuangan], int]:
        offset = page_to_offset(page, limit)
        rows = db.execute(KeuanganStore._ordered().offset(offset).limit(limit)).scalars().all()
        total = db.execute(select(func.count(DetailKeuangan.id))).scalar() or 0
        return list(rows), total

    @staticmethod
    def list_entries_in_range(db: Session, start: datetime, end: datetime) -> List[DetailKeuangan]:
        query = KeuanganStore._ordered().where(
            DetailKeuangan.created_at >= start,
            DetailKeuangan.created_at <= end,
        ).options(
            selectinload(DetailKeuangan.detail_setor_rel)
            .selectinload(DetailSetor.ambil_barang_rel)
            .selectinload(AmbilBarang.user_rel)
        )
        return list(db.execute(query).scalars().all())

    @staticmethod
    def summarize(db: Session, start: datetime, end: datetime, tipe: TipeKeuanganEnum) -> RingkasanTipe:
        total, count = db.execute(
            select(func.coalesce(func.sum(DetailKeuangan.nominal), 0), func.count(DetailKeuangan.id))
            .where(
                DetailKeuangan.tipe == tipe,
                DetailKeuangan.created_at >= start,
                DetailKeuangan.created_at <= end,
            )
        ).one()
        return RingkasanTipe(total=Decimal(str(total)), count=count)


def _penyetor(entry: DetailKeuangan) -> Optional[PenyetorOut]:
    detail = entry.detail_setor_rel
    if detail is None or detail.ambil_barang_rel is None or detail.ambil_barang_rel.user_rel is None:
        return None
    user = detail.ambil_barang_rel.user_rel
    return PenyetorOut(id=user.id, nama_lengkap=user.nama_lengkap)


class KeuanganService:
    """Ledger workflows: saldo, manual income/expense, deletion and reports."""

    def __init__(self, database: Database, clock, allow_negative_saldo: bool = False):
        self.database = database
        self.clock = clock
        self.allow_negative_saldo = allow_negative_saldo

    def get_saldo(self) -> SaldoOut:
        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            return SaldoOut.model_validate(KeuanganStore.get_saldo(db))

    def get_histori(self, page: int = 1, limit: int = 20) -> PaginatedResponse[DetailKeuanganOut]:
        with self.database.session() as db:
            rows, total = KeuanganStore.list_entries(db, page, limit)
            return PaginatedResponse[DetailKeuanganOut](
                data=[DetailKeuanganOut.model_validate(r) for r in rows],
                total=total,
                page=page,
                limit=limit,
            )

    def get_histori_range(self, start: datetime, end: datetime) -> List[DetailKeuanganDetail]:
        if start > end:
            raise ValidationError("start must not be after end")
        with self.database.session() as db:
            rows = KeuanganStore.list_entries_in_range(db, start, end)
            return [
                DetailKeuanganDetail(**DetailKeuanganOut.model_validate(r).model_dump(), penyetor=_penyetor(r))
                for r in rows
            ]

    def get_histori_by_month(self, year: int, month: int) -> List[DetailKeuanganDetail]:
        if month < 1 or month > 12:
            raise ValidationError(f"Invalid month: {month}")
        start, end = month_bounds(year, month)
        return self.get_histori_range(start, end)

    def get_detail_keuangan(self, entry_id: int) -> DetailKeuanganDetail:
        with self.database.session() as db:
            entry = db.execute(
                select(DetailKeuangan)
                .where(DetailKeuangan.id == entry_id)
                .options(
                    selectinload(DetailKeuangan.detail_setor_rel)
                    .selectinload(DetailSetor.ambil_barang_rel)
                    .selectinload(AmbilBarang.user_rel)
                )
            ).scalar_one_or_none()
            if entry is None:
                raise NotFoundError(f"Ledger entry with ID {entry_id} not found")
            last_id = KeuanganStore.get_last_transaction_id(db)
            return DetailKeuanganDetail(
                **DetailKeuanganOut.model_validate(entry).model_dump(),
                is_last_transaction=entry.id == last_id,
                penyetor=_penyetor(entry),
            )

    def _validate_manual(self, title: str, nominal: Decimal) -> Decimal:
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty")
        nominal = Decimal(nominal)
        if nominal <= 0:
            raise ValidationError("Nominal must be greater than 0")
        return nominal

    def create_pemasukan(self, title: str, nominal: Decimal, keterangan: Optional[str] = None,
                         user_name: str = "KOSONGAN") -> TransaksiResult:
        nominal = self._validate_manual(title, nominal)

        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            KeuanganStore.get_saldo(db, lock=True)
            entry, saldo = KeuanganStore.post_entry(
                db,
                title=title.strip(),
                tipe=TipeKeuanganEnum.INCOME,
                nominal=nominal,
                keterangan=keterangan,
                created_at=self.clock.now(),
            )
            AuditService(db, self.clock).default_log(
                entity_id=entry.id,
                entity_type=AuditEntityEnum.KEUANGAN,
                description=f"Pemasukan manual '{entry.title}' sebesar Rp{nominal} dicatat",
                user_name=user_name,
            )
            result = TransaksiResult(
                message="Pemasukan berhasil dicatat",
                transaksi=DetailKeuanganOut.model_validate(entry),
                saldo_terbaru=saldo.total_saldo,
            )

        logger.info("Manual income %s posted: %s", result.transaksi.id, nominal)
        return result

    def create_pengeluaran(self, title: str, nominal: Decimal, keterangan: Optional[str] = None,
                           user_name: str = "KOSONGAN") -> TransaksiResult:
        nominal = self._validate_manual(title, nominal)

        # Fast-fail before posting; re-checked under the saldo lock below
        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            current = KeuanganStore.get_saldo(db)
            if not self.allow_negative_saldo and Decimal(current.total_saldo) < nominal:
                raise ValidationError(f"Saldo tidak mencukupi. Saldo saat ini: Rp{current.total_saldo}")

        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo_cukup(db, nominal, self.allow_negative_saldo)
            entry, saldo = KeuanganStore.post_entry(
                db,
                title=title.strip(),
                tipe=TipeKeuanganEnum.EXPENSE,
                nominal=nominal,
                keterangan=keterangan,
                created_at=self.clock.now(),
            )
            AuditService(db, self.clock).default_log(
                entity_id=entry.id,
                entity_type=AuditEntityEnum.KEUANGAN,
                description=f"Pengeluaran manual '{entry.title}' sebesar Rp{nominal} dicatat",
                user_name=user_name,
            )
            result = TransaksiResult(
                message="Pengeluaran berhasil dicatat",
                transaksi=DetailKeuanganOut.model_validate(entry),
                saldo_terbaru=saldo.total_saldo,
            )

        logger.info("Manual expense %s posted: %s", result.transaksi.id, nominal)
        return result

    def delete_detail_keuangan(self, entry_id: int, user_name: str = "KOSONGAN") -> SaldoOut:
        with self.database.session() as db:
            existing = KeuanganStore.get_entry(db, entry_id)
            if existing is None:
                raise NotFoundError(f"Ledger entry with ID {entry_id} not found")
            KeuanganStore.check_deletable(db, existing)

        with self.database.transaction() as db:
            saldo = KeuanganStore.delete_entry(db, entry_id)
            AuditService(db, self.clock).default_log(
                entity_id=entry_id,
                entity_type=AuditEntityEnum.KEUANGAN,
                description=f"Transaksi keuangan #{entry_id} dihapus, saldo menjadi Rp{saldo.total_saldo}",
                user_name=user_name,
            )
            result = SaldoOut.model_validate(saldo)

        logger.info("Ledger entry %s deleted, saldo now %s", entry_id, result.total_saldo)
        return result

    def get_laporan_harian(self, tanggal: Optional[date] = None) -> LaporanHarian:
        tanggal = tanggal or self.clock.today()
        start, end = day_bounds(tanggal)
        with self.database.session() as db:
            pemasukan = KeuanganStore.summarize(db, start, end, TipeKeuanganEnum.INCOME)
            pengeluaran = KeuanganStore.summarize(db, start, end, TipeKeuanganEnum.EXPENSE)
            transaksi = [
                DetailKeuanganOut.model_validate(r)
                for r in KeuanganStore.list_entries_in_range(db, start, end)
            ]
        return LaporanHarian(
            tanggal=tanggal.isoformat(),
            pemasukan=pemasukan,
            pengeluaran=pengeluaran,
            selisih=pemasukan.total - pengeluaran.total,
            transaksi=transaksi,
        )

    def get_laporan_bulanan(self, bulan: Optional[str] = None) -> LaporanBulanan:
        if bulan:
            year, month = parse_month(bulan)
        else:
            today = self.clock.today()
            year, month = today.year, today.month
        start, end = month_bounds(year, month)

        with self.database.session() as db:
            pemasukan = KeuanganStore.summarize(db, start, end, TipeKeuanganEnum.INCOME)
            pengeluaran = KeuanganStore.summarize(db, start, end, TipeKeuanganEnum.EXPENSE)
            created = db.execute(
                select(DetailKeuangan.created_at).where(
                    DetailKeuangan.created_at >= start,
                    DetailKeuangan.created_at <= end,
                )
            ).scalars().all()
            hari_aktif = len({c.date() for c in created})

        return LaporanBulanan(
            bulan=f"{year}-{month:02d}",
            pemasukan=pemasukan,
            pengeluaran=pengeluaran,
            selisih=pemasukan.total - pengeluaran.total,
            jumlah_hari_aktif=hari_aktif,
        )
