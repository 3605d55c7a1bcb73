from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select, func, update
from sqlalchemy.orm import Session, selectinload

from database import Database
from errors import NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.AuditTrail import AuditEntityEnum
from models.StokHarian import StokHarian
from schemas.AmbilBarangSchemas import DetailSetorDetail, DetailSetorOut
from schemas.UserSchemas import UserBrief
from services.ambilbarang_services import recompute_status
from services.audit_services import AuditService
from services.stok_services import StokStore

logger = logging.getLogger(__name__)


class DetailSetorService:
    """
    Corrections to a seller's pending detail setor.

    Only the newest detail setor of a (seller, stok) pair may be edited or
    deleted, and only while it has not been deposited.
    """

    def __init__(self, database: Database, clock):
        self.database = database
        self.clock = clock

    @staticmethod
    def _get(db: Session, detail_id: int, lock: bool = False) -> Optional[DetailSetor]:
        query = (
            select(DetailSetor)
            .where(DetailSetor.id == detail_id)
            .options(
                selectinload(DetailSetor.stok_harian_rel).selectinload(StokHarian.barang_rel),
                selectinload(DetailSetor.ambil_barang_rel).selectinload(AmbilBarang.user_rel),
                selectinload(DetailSetor.ambil_barang_rel).selectinload(AmbilBarang.setor_kepada_rel),
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        return db.execute(query).scalar_one_or_none()

    @staticmethod
    def last_detail_id(db: Session, user_id: int, stok_harian_id: int) -> Optional[int]:
        return db.execute(
            select(func.max(DetailSetor.id))
            .join(AmbilBarang, DetailSetor.ambil_barang_id == AmbilBarang.id)
            .where(
                AmbilBarang.user_id == user_id,
                DetailSetor.stok_harian_id == stok_harian_id,
            )
        ).scalar()

    @staticmethod
    def is_last_transaction(db: Session, detail: DetailSetor) -> bool:
        user_id = detail.ambil_barang_rel.user_id
        return DetailSetorService.last_detail_id(db, user_id, detail.stok_harian_id) == detail.id

    def _check_editable(self, db: Session, detail: Optional[DetailSetor], detail_id: int, action: str) -> DetailSetor:
        if detail is None:
            raise NotFoundError(f"Detail setor with ID {detail_id} not found")
        if detail.tanggal_setor is not None:
            raise ValidationError(f"A detail setor that has already been deposited cannot be {action}")
        if not self.is_last_transaction(db, detail):
            raise ValidationError(f"Only the most recent detail setor of this seller and stok can be {action}")
        return detail

    def get_detail_setor(self, detail_id: int) -> DetailSetorDetail:
        with self.database.session() as db:
            detail = self._get(db, detail_id)
            if detail is None:
                raise NotFoundError(f"Detail setor with ID {detail_id} not found")
            ambil_barang = detail.ambil_barang_rel
            return DetailSetorDetail(
                **DetailSetorOut.model_validate(detail).model_dump(),
                seller=UserBrief.model_validate(ambil_barang.user_rel) if ambil_barang.user_rel else None,
                setor_kepada=(
                    UserBrief.model_validate(ambil_barang.setor_kepada_rel)
                    if ambil_barang.setor_kepada_rel else None
                ),
                ambil_barang_status=ambil_barang.status,
                is_last_transaction=self.is_last_transaction(db, detail),
            )

    def update_detail_setor_qty(self, detail_id: int, new_qty: int, user_name: str = "KOSONGAN") -> DetailSetorOut:
        if new_qty is None or new_qty <= 0:
            raise ValidationError("Quantity must be greater than 0")

        with self.database.session() as db:
            detail = self._check_editable(db, self._get(db, detail_id), detail_id, "modified")
            qty_diff = new_qty - detail.qty
            if qty_diff > 0 and detail.stok_harian_rel.stok < qty_diff:
                raise ValidationError(f"Stok tidak mencukupi. Tersedia: {detail.stok_harian_rel.stok}")

        with self.database.transaction() as db:
            detail = self._check_editable(db, self._get(db, detail_id, lock=True), detail_id, "modified")
            old_qty = detail.qty
            qty_diff = new_qty - old_qty

            # Only a row that is still pending and unchanged since it was read may be rewritten
            updated = db.execute(
                update(DetailSetor)
                .where(
                    DetailSetor.id == detail_id,
                    DetailSetor.tanggal_setor.is_(None),
                    DetailSetor.qty == old_qty,
                )
                .values(qty=new_qty, total_harga=Decimal(detail.harga_satuan) * new_qty)
                .execution_options(synchronize_session=False)
            ).rowcount
            if updated == 0:
                raise ValidationError("A detail setor that has already been deposited cannot be modified")

            if qty_diff > 0:
                batch = StokStore.get_batch(db, detail.stok_harian_id, lock=True)
                if batch.stok < qty_diff:
                    raise ValidationError(f"Stok tidak mencukupi. Tersedia: {batch.stok}")
                StokStore.decrement(db, detail.stok_harian_id, qty_diff)
            elif qty_diff < 0:
                StokStore.increment(db, detail.stok_harian_id, -qty_diff)

            AuditService(db, self.clock).default_log(
                entity_id=detail.id,
                entity_type=AuditEntityEnum.DETAIL_SETOR,
                description=f"Qty {detail.barang_nama} diubah dari {old_qty} menjadi {new_qty}",
                user_name=user_name,
            )
            result = DetailSetorOut.model_validate(self._get(db, detail_id))

        logger.info("Detail setor %s qty %s -> %s", detail_id, old_qty, new_qty)
        return result

    def delete_detail_setor(self, detail_id: int, user_name: str = "KOSONGAN") -> dict:
        with self.database.session() as db:
            self._check_editable(db, self._get(db, detail_id), detail_id, "deleted")

        with self.database.transaction() as db:
            detail = self._check_editable(db, self._get(db, detail_id, lock=True), detail_id, "deleted")
            qty = detail.qty
            stok_harian_id = detail.stok_harian_id
            ambil_barang_id = detail.ambil_barang_id
            barang_nama = detail.barang_nama

            ambil_barang = db.get(AmbilBarang, ambil_barang_id, with_for_update=True)
            deleted = db.execute(
                delete(DetailSetor)
                .where(DetailSetor.id == detail_id, DetailSetor.tanggal_setor.is_(None))
                .execution_options(synchronize_session=False)
            ).rowcount
            if deleted == 0:
                raise ValidationError("A detail setor that has already been deposited cannot be deleted")
            db.expunge(detail)
            db.expire(ambil_barang, ["detail_setors"])

            StokStore.increment(db, stok_harian_id, qty)

            remaining = db.execute(
                select(func.count(DetailSetor.id)).where(DetailSetor.ambil_barang_id == ambil_barang_id)
            ).scalar() or 0
            ambil_barang_deleted = remaining == 0
            if ambil_barang_deleted:
                db.delete(ambil_barang)
                db.flush()
            else:
                recompute_status(db, ambil_barang_id)

            AuditService(db, self.clock).default_log(
                entity_id=detail_id,
                entity_type=AuditEntityEnum.DETAIL_SETOR,
                description=(
                    f"Detail setor {barang_nama} ({qty} pcs) dihapus, stok dikembalikan"
                    + (f"; ambil barang #{ambil_barang_id} ikut dihapus" if ambil_barang_deleted else "")
                ),
                user_name=user_name,
            )

        logger.info("Detail setor %s deleted (ambil barang %s removed: %s)", detail_id, ambil_barang_id, ambil_barang_deleted)
        return {
            "success": True,
            "message": "Transaksi berhasil dihapus",
            "ambil_barang_deleted": ambil_barang_deleted,
        }
