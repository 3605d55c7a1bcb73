from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from database import Database
from errors import InsufficientStockError, NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor, StatusAmbilBarangEnum
from models.AuditTrail import AuditEntityEnum
from models.StokHarian import StokHarian
from schemas.AmbilBarangSchemas import AmbilBarangOut
from services.audit_services import AuditService
from services.stok_services import StokStore
from services.user_services import UserService

logger = logging.getLogger(__name__)

PENDING_STATUSES = (StatusAmbilBarangEnum.NONE_DEPOSITED, StatusAmbilBarangEnum.PARTIALLY_DEPOSITED)


def _with_details():
    return (
        selectinload(AmbilBarang.user_rel),
        selectinload(AmbilBarang.setor_kepada_rel),
        selectinload(AmbilBarang.detail_setors)
        .selectinload(DetailSetor.stok_harian_rel)
        .selectinload(StokHarian.barang_rel),
    )


def compute_status(details: Iterable[DetailSetor]) -> StatusAmbilBarangEnum:
    details = list(details)
    deposited = sum(1 for d in details if d.tanggal_setor is not None)
    if details and deposited == len(details):
        return StatusAmbilBarangEnum.FULLY_DEPOSITED
    if deposited > 0:
        return StatusAmbilBarangEnum.PARTIALLY_DEPOSITED
    return StatusAmbilBarangEnum.NONE_DEPOSITED


def recompute_status(db: Session, ambil_barang_id: int) -> StatusAmbilBarangEnum:
    """Re-read every detail of the acquisition and persist the derived status."""
    ambil_barang = db.get(AmbilBarang, ambil_barang_id, with_for_update=True)
    details = db.execute(
        select(DetailSetor)
        .where(DetailSetor.ambil_barang_id == ambil_barang_id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    status = compute_status(details)
    ambil_barang.status = status
    db.flush()
    return status


class AmbilBarangService:
    """Ambil barang: a seller takes stock on credit, one pending detail setor per line."""

    def __init__(self, database: Database, clock):
        self.database = database
        self.clock = clock

    def _prepare_items(self, db: Session, items: Sequence[Tuple[int, int]], lock: bool = False) -> List[dict]:
        prepared = []
        for stok_harian_id, qty in items:
            if qty is None or qty <= 0:
                raise ValidationError("Quantity must be greater than 0")

            stok = StokStore.get_batch(db, stok_harian_id, lock=lock)
            if not stok:
                raise NotFoundError(f"Stok with ID {stok_harian_id} not found")

            if stok.stok < qty:
                raise InsufficientStockError(
                    f"Stok {stok.barang_nama} tidak mencukupi. Tersedia: {stok.stok}, Diminta: {qty}"
                )

            harga_satuan = Decimal(stok.harga)
            prepared.append({
                "stok_harian_id": stok_harian_id,
                "qty": qty,
                "harga_satuan": harga_satuan,
                "total_harga": harga_satuan * qty,
            })
        return prepared

    def create_ambil_barang(
            self,
            user_id: int,
            setor_kepada_id: int,
            items: Sequence[Tuple[int, int]],
            keterangan: Optional[str] = None,
            user_name: str = "KOSONGAN",
    ) -> AmbilBarangOut:
        """
        Allocate stock to a seller.

        `items` is a sequence of `(stok_harian_id, qty)`. All decrements and the
        acquisition with its detail setors are written in one transaction; if any
        decrement fails nothing is kept.
        """
        with self.database.session() as db:
            UserService.require(db, user_id, "User")
            UserService.require(db, setor_kepada_id, "Admin")
            if not items:
                raise ValidationError("Items cannot be empty")
            self._prepare_items(db, items)

        with self.database.transaction() as db:
            # Re-read under lock; the prices snapshotted here are the ones that stick
            prepared = self._prepare_items(db, items, lock=True)
            for item in prepared:
                StokStore.decrement(db, item["stok_harian_id"], item["qty"])

            now = self.clock.now()
            ambil_barang = AmbilBarang(
                user_id=user_id,
                setor_kepada_id=setor_kepada_id,
                keterangan=keterangan,
                status=StatusAmbilBarangEnum.NONE_DEPOSITED,
                tanggal_ambil=now,
            )
            db.add(ambil_barang)
            db.flush()

            for item in prepared:
                db.add(DetailSetor(
                    ambil_barang_id=ambil_barang.id,
                    stok_harian_id=item["stok_harian_id"],
                    qty=item["qty"],
                    harga_satuan=item["harga_satuan"],
                    total_harga=item["total_harga"],
                    tanggal_setor=None,
                    created_at=now,
                ))
            db.flush()

            total_qty = sum(i["qty"] for i in prepared)
            total_harga = sum((i["total_harga"] for i in prepared), Decimal("0"))
            AuditService(db, self.clock).default_log(
                entity_id=ambil_barang.id,
                entity_type=AuditEntityEnum.AMBIL_BARANG,
                description=f"Ambil barang #{ambil_barang.id} dibuat, total items: {total_qty}, total harga: Rp{total_harga}",
                user_name=user_name,
            )
            result = self._load(db, ambil_barang.id)

        logger.info("Ambil barang %s created for user %s (%s lines)", result.id, user_id, len(prepared))
        return result

    def _load(self, db: Session, ambil_barang_id: int) -> AmbilBarangOut:
        ambil_barang = db.execute(
            select(AmbilBarang)
            .where(AmbilBarang.id == ambil_barang_id)
            .options(*_with_details())
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not ambil_barang:
            raise NotFoundError(f"Ambil barang with ID {ambil_barang_id} not found")
        return AmbilBarangOut.model_validate(ambil_barang)

    def get_ambil_barang(self, ambil_barang_id: int) -> AmbilBarangOut:
        with self.database.session() as db:
            return self._load(db, ambil_barang_id)

    def get_by_user(self, user_id: int) -> List[AmbilBarangOut]:
        with self.database.session() as db:
            UserService.require(db, user_id, "User")
            rows = db.execute(
                select(AmbilBarang)
                .where(AmbilBarang.user_id == user_id)
                .options(*_with_details())
                .order_by(AmbilBarang.tanggal_ambil.desc(), AmbilBarang.id.desc())
            ).scalars().all()
            return [AmbilBarangOut.model_validate(r) for r in rows]

    def get_belum_setor(self) -> List[AmbilBarangOut]:
        """Open acquisitions, oldest first, each listing only its pending details."""
        with self.database.session() as db:
            rows = db.execute(
                select(AmbilBarang)
                .where(AmbilBarang.status.in_(PENDING_STATUSES))
                .options(*_with_details())
                .order_by(AmbilBarang.tanggal_ambil.asc(), AmbilBarang.id.asc())
            ).scalars().all()

            result = []
            for row in rows:
                out = AmbilBarangOut.model_validate(row)
                out.detail_setors = [d for d in out.detail_setors if d.tanggal_setor is None]
                result.append(out)
            return result

    def update_keterangan(self, ambil_barang_id: int, keterangan: Optional[str],
                          user_name: str = "KOSONGAN") -> AmbilBarangOut:
        with self.database.transaction() as db:
            ambil_barang = db.get(AmbilBarang, ambil_barang_id, with_for_update=True)
            if not ambil_barang:
                raise NotFoundError(f"Ambil barang with ID {ambil_barang_id} not found")
            ambil_barang.keterangan = keterangan
            db.flush()
            AuditService(db, self.clock).default_log(
                entity_id=ambil_barang.id,
                entity_type=AuditEntityEnum.AMBIL_BARANG,
                description=f"Keterangan ambil barang #{ambil_barang.id} diubah",
                user_name=user_name,
            )
            return self._load(db, ambil_barang_id)
