from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, func, and_, desc, distinct
from sqlalchemy.orm import Session, selectinload

from database import Database
from errors import InsufficientStockError, NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.AuditTrail import AuditEntityEnum
from models.Barang import Barang
from models.Keuangan import TipeKeuanganEnum
from models.StokHarian import StokHarian
from schemas.BarangSchemas import BarangOut
from schemas.PaginatedResponseSchemas import PaginatedResponse
from schemas.StokSchemas import StokHarianOut, StokHarianSummary
from services.audit_services import AuditService
from services.keuangan_services import KeuanganStore
from utils import day_bounds, page_to_offset

logger = logging.getLogger(__name__)


class StokStore:
    """Inventory store for stok_harians. Mutations run inside the caller's transaction."""

    @staticmethod
    def get_batch(db: Session, stok_id: int, lock: bool = False) -> Optional[StokHarian]:
        query = (
            select(StokHarian)
            .where(StokHarian.id == stok_id)
            .options(selectinload(StokHarian.barang_rel))
        )
        if lock:
            query = query.with_for_update()
        return db.execute(query.execution_options(populate_existing=True)).scalar_one_or_none()

    @staticmethod
    def create_batch(
            db: Session,
            barang_id: int,
            harga: Decimal,
            stok: int,
            modal: Decimal,
            tanggal_edar: datetime,
            keterangan: Optional[str] = None,
            created_at: Optional[datetime] = None,
    ) -> StokHarian:
        if Decimal(harga) <= 0:
            raise ValidationError("Harga must be greater than 0")
        if stok <= 0:
            raise ValidationError("Stok must be greater than 0")
        if Decimal(modal) < 0:
            raise ValidationError("Modal cannot be negative")

        batch = StokHarian(
            barang_id=barang_id,
            harga=Decimal(harga),
            stok=stok,
            modal=Decimal(modal),
            keterangan=keterangan,
            tanggal_edar=tanggal_edar,
            created_at=created_at or datetime.now(),
        )
        db.add(batch)
        db.flush()
        return batch

    @staticmethod
    def decrement(db: Session, stok_id: int, qty: int) -> int:
        """
        `stok = stok - qty` guarded by `stok >= qty` in the same statement.
        Returns the remaining stok.
        """
        if qty <= 0:
            raise ValidationError("Quantity must be greater than 0")

        result = db.execute(
            update(StokHarian)
            .where(and_(StokHarian.id == stok_id, StokHarian.stok >= qty))
            .values(stok=StokHarian.stok - qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            batch = StokStore.get_batch(db, stok_id)
            if batch is None:
                raise NotFoundError(f"Stok with ID {stok_id} not found")
            raise InsufficientStockError(
                f"Stok {batch.barang_nama} tidak mencukupi. Tersedia: {batch.stok}, Diminta: {qty}"
            )
        remaining = db.execute(select(StokHarian.stok).where(StokHarian.id == stok_id)).scalar_one()
        logger.debug("Stok %s decremented by %s, remaining %s", stok_id, qty, remaining)
        return remaining

    @staticmethod
    def increment(db: Session, stok_id: int, qty: int) -> int:
        """Compensating operation: return qty to the shelf."""
        if qty <= 0:
            raise ValidationError("Quantity must be greater than 0")

        result = db.execute(
            update(StokHarian)
            .where(StokHarian.id == stok_id)
            .values(stok=StokHarian.stok + qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Stok with ID {stok_id} not found")
        remaining = db.execute(select(StokHarian.stok).where(StokHarian.id == stok_id)).scalar_one()
        logger.debug("Stok %s incremented by %s, remaining %s", stok_id, qty, remaining)
        return remaining

    @staticmethod
    def has_allocations(db: Session, stok_id: int) -> bool:
        return db.execute(
            select(DetailSetor.id).where(DetailSetor.stok_harian_id == stok_id).limit(1)
        ).first() is not None

    @staticmethod
    def _aggregates(db: Session, stok_ids: List[int]) -> Dict[int, Tuple[int, int]]:
        """jumlah_ambil and jumlah_penyetor per stok id, derived from detail_setors."""
        if not stok_ids:
            return {}

        ambil = dict(
            db.execute(
                select(DetailSetor.stok_harian_id, func.coalesce(func.sum(DetailSetor.qty), 0))
                .where(DetailSetor.stok_harian_id.in_(stok_ids))
                .group_by(DetailSetor.stok_harian_id)
            ).all()
        )
        penyetor = dict(
            db.execute(
                select(DetailSetor.stok_harian_id, func.count(distinct(AmbilBarang.user_id)))
                .join(AmbilBarang, DetailSetor.ambil_barang_id == AmbilBarang.id)
                .where(
                    DetailSetor.stok_harian_id.in_(stok_ids),
                    DetailSetor.tanggal_setor.is_not(None),
                )
                .group_by(DetailSetor.stok_harian_id)
            ).all()
        )
        return {sid: (int(ambil.get(sid, 0)), int(penyetor.get(sid, 0))) for sid in stok_ids}

    @staticmethod
    def summarize(db: Session, batches: List[StokHarian]) -> List[StokHarianSummary]:
        aggregates = StokStore._aggregates(db, [b.id for b in batches])
        result = []
        for batch in batches:
            jumlah_ambil, jumlah_penyetor = aggregates.get(batch.id, (0, 0))
            result.append(StokHarianSummary(
                **StokHarianOut.model_validate(batch).model_dump(),
                jumlah_ambil=jumlah_ambil,
                jumlah_penyetor=jumlah_penyetor,
            ))
        return result

    @staticmethod
    def find_today(db: Session, today: date) -> List[StokHarianSummary]:
        start, end = day_bounds(today)
        batches = db.execute(
            select(StokHarian)
            .where(StokHarian.tanggal_edar >= start, StokHarian.tanggal_edar <= end)
            .options(selectinload(StokHarian.barang_rel))
            .order_by(desc(StokHarian.tanggal_edar), desc(StokHarian.id))
        ).scalars().all()
        return StokStore.summarize(db, list(batches))

    @staticmethod
    def find_history(db: Session, page: int = 1, limit: int = 20) -> Tuple[List[StokHarianSummary], int]:
        offset = page_to_offset(page, limit)
        batches = db.execute(
            select(StokHarian)
            .options(selectinload(StokHarian.barang_rel))
            .order_by(desc(StokHarian.tanggal_edar), desc(StokHarian.id))
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        total = db.execute(select(func.count(StokHarian.id))).scalar() or 0
        return StokStore.summarize(db, list(batches)), total


class StokService:
    """
    Stock batch lifecycle. Creating, re-costing and deleting a batch moves
    the saldo, so each of them posts its ledger entry in the same transaction.
    """

    def __init__(self, database: Database, clock, allow_negative_saldo: bool = False):
        self.database = database
        self.clock = clock
        self.allow_negative_saldo = allow_negative_saldo

    # ---- Barang ----
    def create_barang(self, nama: str, keterangan: Optional[str] = None, gambar: Optional[str] = None,
                      user_name: str = "KOSONGAN") -> BarangOut:
        if not nama or not nama.strip():
            raise ValidationError("Nama barang cannot be empty")
        with self.database.transaction() as db:
            barang = Barang(nama=nama.strip(), keterangan=keterangan, gambar=gambar, created_at=self.clock.now())
            db.add(barang)
            db.flush()
            AuditService(db, self.clock).default_log(
                entity_id=barang.id,
                entity_type=AuditEntityEnum.BARANG,
                description=f"Barang {barang.nama} dibuat",
                user_name=user_name,
            )
            return BarangOut.model_validate(barang)

    def list_barang(self) -> List[BarangOut]:
        with self.database.session() as db:
            rows = db.execute(
                select(Barang).where(Barang.active()).order_by(Barang.nama.asc(), Barang.id.asc())
            ).scalars().all()
            return [BarangOut.model_validate(r) for r in rows]

    def list_barang_with_deleted(self) -> List[BarangOut]:
        """Every barang, active ones first; used to filter stok history by retired items too."""
        with self.database.session() as db:
            rows = db.execute(
                select(Barang).order_by(Barang.is_deleted.asc(), Barang.nama.asc(), Barang.id.asc())
            ).scalars().all()
            return [BarangOut.model_validate(r) for r in rows]

    def get_barang(self, barang_id: int) -> BarangOut:
        with self.database.session() as db:
            barang = db.get(Barang, barang_id)
            if not barang:
                raise NotFoundError(f"Barang with ID {barang_id} not found")
            return BarangOut.model_validate(barang)

    @staticmethod
    def _require_barang(db: Session, barang_id: int) -> Barang:
        barang = db.get(Barang, barang_id, with_for_update=True)
        if not barang:
            raise NotFoundError(f"Barang with ID {barang_id} not found")
        return barang

    def update_barang(self, barang_id: int, user_name: str = "KOSONGAN", **changes) -> BarangOut:
        if "nama" in changes:
            if not changes["nama"] or not changes["nama"].strip():
                raise ValidationError("Nama barang cannot be empty")
            changes["nama"] = changes["nama"].strip()

        with self.database.transaction() as db:
            barang = self._require_barang(db, barang_id)
            if barang.is_deleted:
                raise ValidationError(f"Barang {barang.nama} has been deleted; restore it before editing")

            changed = []
            for field, value in changes.items():
                if getattr(barang, field) != value:
                    changed.append(f"{field}: {getattr(barang, field)} -> {value}")
                    setattr(barang, field, value)
            db.flush()

            AuditService(db, self.clock).default_log(
                entity_id=barang.id,
                entity_type=AuditEntityEnum.BARANG,
                description=f"Barang {barang.nama} diubah: {', '.join(changed) or 'tanpa perubahan nilai'}",
                user_name=user_name,
            )
            return BarangOut.model_validate(barang)

    def delete_barang(self, barang_id: int, user_name: str = "KOSONGAN") -> BarangOut:
        """Soft delete: the barang leaves the active list, its stok harian history is kept."""
        with self.database.transaction() as db:
            barang = self._require_barang(db, barang_id)
            if barang.is_deleted:
                raise ValidationError(f"Barang {barang.nama} is already deleted")
            barang.soft_delete(self.clock.now())
            db.flush()

            AuditService(db, self.clock).default_log(
                entity_id=barang.id,
                entity_type=AuditEntityEnum.BARANG,
                description=f"Barang {barang.nama} dihapus",
                user_name=user_name,
            )
            result = BarangOut.model_validate(barang)

        logger.info("Barang %s soft deleted", barang_id)
        return result

    def restore_barang(self, barang_id: int, user_name: str = "KOSONGAN") -> BarangOut:
        with self.database.transaction() as db:
            barang = self._require_barang(db, barang_id)
            if not barang.is_deleted:
                raise ValidationError(f"Barang {barang.nama} is not deleted")
            barang.restore()
            db.flush()

            AuditService(db, self.clock).default_log(
                entity_id=barang.id,
                entity_type=AuditEntityEnum.BARANG,
                description=f"Barang {barang.nama} dipulihkan",
                user_name=user_name,
            )
            result = BarangOut.model_validate(barang)

        logger.info("Barang %s restored", barang_id)
        return result

    # ---- Reads ----
    def get_stok(self, stok_id: int) -> StokHarianSummary:
        with self.database.session() as db:
            batch = StokStore.get_batch(db, stok_id)
            if not batch:
                raise NotFoundError(f"Stok with ID {stok_id} not found")
            return StokStore.summarize(db, [batch])[0]

    def get_stok_hari_ini(self) -> List[StokHarianSummary]:
        with self.database.session() as db:
            return StokStore.find_today(db, self.clock.today())

    def get_histori_stok(self, page: int = 1, limit: int = 20) -> PaginatedResponse[StokHarianSummary]:
        with self.database.session() as db:
            data, total = StokStore.find_history(db, page, limit)
            return PaginatedResponse[StokHarianSummary](data=data, total=total, page=page, limit=limit)

    # ---- Mutations ----
    def _post_modal(self, db: Session, batch: StokHarian, delta: Decimal, reason: str) -> None:
        """Positive delta = more capital spent (EXPENSE); negative = refund (INCOME)."""
        if delta == 0:
            return
        nama = batch.barang_nama
        if delta > 0:
            KeuanganStore.ensure_saldo_cukup(db, delta, self.allow_negative_saldo)
            KeuanganStore.post_entry(
                db,
                title=f"Modal: {nama}",
                tipe=TipeKeuanganEnum.EXPENSE,
                nominal=delta,
                keterangan=f"{reason} stok #{batch.id}",
                created_at=self.clock.now(),
            )
        else:
            KeuanganStore.get_saldo(db, lock=True)
            KeuanganStore.post_entry(
                db,
                title=f"Refund modal: {nama}",
                tipe=TipeKeuanganEnum.INCOME,
                nominal=-delta,
                keterangan=f"{reason} stok #{batch.id}",
                created_at=self.clock.now(),
            )

    def _check_saldo_for(self, amount: Decimal) -> None:
        if amount <= 0 or self.allow_negative_saldo:
            return
        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            saldo = KeuanganStore.get_saldo(db)
            if Decimal(saldo.total_saldo) < amount:
                raise ValidationError(
                    f"Saldo tidak mencukupi untuk modal. Saldo saat ini: Rp{saldo.total_saldo}, dibutuhkan: Rp{amount}"
                )

    def create_stok_harian(
            self,
            barang_id: int,
            harga: Decimal,
            stok: int,
            modal: Decimal = Decimal("0"),
            tanggal_edar: Optional[datetime] = None,
            keterangan: Optional[str] = None,
            user_name: str = "KOSONGAN",
    ) -> StokHarianOut:
        harga = Decimal(harga)
        modal = Decimal(modal)
        if harga <= 0:
            raise ValidationError("Harga must be greater than 0")
        if stok <= 0:
            raise ValidationError("Stok must be greater than 0")
        if modal < 0:
            raise ValidationError("Modal cannot be negative")

        with self.database.session() as db:
            barang = db.get(Barang, barang_id)
            if barang is None:
                raise NotFoundError(f"Barang with ID {barang_id} not found")
            if barang.is_deleted:
                raise ValidationError(f"Barang {barang.nama} has been deleted; restore it before adding stok")
        self._check_saldo_for(modal)

        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            batch = StokStore.create_batch(
                db,
                barang_id=barang_id,
                harga=harga,
                stok=stok,
                modal=modal,
                tanggal_edar=tanggal_edar or self.clock.now(),
                keterangan=keterangan,
                created_at=self.clock.now(),
            )
            batch = StokStore.get_batch(db, batch.id)
            self._post_modal(db, batch, modal, "Modal awal")
            AuditService(db, self.clock).default_log(
                entity_id=batch.id,
                entity_type=AuditEntityEnum.STOK_HARIAN,
                description=f"Stok {batch.barang_nama} dibuat: {stok} pcs @ Rp{harga}, modal Rp{modal}",
                user_name=user_name,
            )
            result = StokHarianOut.model_validate(batch)

        logger.info("Stok %s created for barang %s (qty=%s, modal=%s)", result.id, barang_id, stok, modal)
        return result

    def update_stok_harian(
            self,
            stok_id: int,
            harga: Optional[Decimal] = None,
            stok: Optional[int] = None,
            modal: Optional[Decimal] = None,
            keterangan: Optional[str] = None,
            tanggal_edar: Optional[datetime] = None,
            user_name: str = "KOSONGAN",
    ) -> StokHarianOut:
        if harga is not None and Decimal(harga) <= 0:
            raise ValidationError("Harga must be greater than 0")
        if stok is not None and stok < 0:
            raise ValidationError("Stok cannot be negative")
        if modal is not None and Decimal(modal) < 0:
            raise ValidationError("Modal cannot be negative")

        with self.database.session() as db:
            existing = StokStore.get_batch(db, stok_id)
            if existing is None:
                raise NotFoundError(f"Stok with ID {stok_id} not found")
            old_modal = Decimal(existing.modal)
        if modal is not None:
            self._check_saldo_for(Decimal(modal) - old_modal)

        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            batch = StokStore.get_batch(db, stok_id, lock=True)
            if batch is None:
                raise NotFoundError(f"Stok with ID {stok_id} not found")

            changes = []
            if harga is not None and Decimal(harga) != Decimal(batch.harga):
                # Existing detail setors keep their snapshotted harga_satuan
                changes.append(f"harga Rp{batch.harga} -> Rp{harga}")
                batch.harga = Decimal(harga)
            if stok is not None and stok != batch.stok:
                changes.append(f"stok {batch.stok} -> {stok}")
                batch.stok = stok
            if keterangan is not None:
                batch.keterangan = keterangan
            if tanggal_edar is not None:
                batch.tanggal_edar = tanggal_edar
            if modal is not None:
                delta = Decimal(modal) - Decimal(batch.modal)
                if delta != 0:
                    changes.append(f"modal Rp{batch.modal} -> Rp{modal}")
                    batch.modal = Decimal(modal)
                    db.flush()
                    self._post_modal(db, batch, delta, "Perubahan modal")

            db.flush()
            AuditService(db, self.clock).default_log(
                entity_id=batch.id,
                entity_type=AuditEntityEnum.STOK_HARIAN,
                description=f"Stok {batch.barang_nama} diubah: {', '.join(changes) or 'tanpa perubahan nilai'}",
                user_name=user_name,
            )
            result = StokHarianOut.model_validate(batch)

        logger.info("Stok %s updated", stok_id)
        return result

    def delete_stok_harian(self, stok_id: int, user_name: str = "KOSONGAN") -> dict:
        with self.database.session() as db:
            if StokStore.get_batch(db, stok_id) is None:
                raise NotFoundError(f"Stok with ID {stok_id} not found")
            if StokStore.has_allocations(db, stok_id):
                raise ValidationError("Stok that has already been taken cannot be deleted")

        with self.database.transaction() as db:
            batch = StokStore.get_batch(db, stok_id, lock=True)
            if batch is None:
                raise NotFoundError(f"Stok with ID {stok_id} not found")
            if StokStore.has_allocations(db, stok_id):
                raise ValidationError("Stok that has already been taken cannot be deleted")

            modal = Decimal(batch.modal)
            nama = batch.barang_nama
            if modal > 0:
                KeuanganStore.ensure_saldo(db)
                self._post_modal(db, batch, -modal, "Hapus")

            db.delete(batch)
            db.flush()
            AuditService(db, self.clock).default_log(
                entity_id=stok_id,
                entity_type=AuditEntityEnum.STOK_HARIAN,
                description=f"Stok {nama} dihapus, modal Rp{modal} dikembalikan",
                user_name=user_name,
            )
            saldo = KeuanganStore.get_saldo(db)
            result = {
                "success": True,
                "message": "Stok berhasil dihapus",
                "refund_modal": modal,
                "saldo_terbaru": Decimal(saldo.total_saldo),
            }

        logger.info("Stok %s deleted, modal refunded %s", stok_id, modal)
        return result
