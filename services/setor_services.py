from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from database import Database
from errors import ConflictError, NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.AuditTrail import AuditEntityEnum
from models.Keuangan import TipeKeuanganEnum
from models.StokHarian import StokHarian
from schemas.SetorSchemas import (
    SetorCommand, SetorReceiptLine, SetorResult, parse_setor_payload
)
from services.ambilbarang_services import recompute_status
from services.audit_services import AuditService
from services.keuangan_services import KeuanganStore
from services.stok_services import StokStore
from services.user_services import UserService

logger = logging.getLogger(__name__)


class SetorService:
    """
    Setor (deposit) processing.

    All-or-nothing over the whole id list: every selected detail setor is
    stamped, its qty is taken off the stok again, one INCOME entry is written
    per line, the parent statuses are recomputed and the saldo is moved by the
    accumulated total, all in a single transaction.
    """

    def __init__(self, database: Database, clock):
        self.database = database
        self.clock = clock

    @staticmethod
    def _fetch_details(db: Session, ids: Sequence[int], lock: bool = False) -> Dict[int, DetailSetor]:
        query = (
            select(DetailSetor)
            .where(DetailSetor.id.in_(ids))
            .options(selectinload(DetailSetor.stok_harian_rel).selectinload(StokHarian.barang_rel))
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        return {d.id: d for d in db.execute(query).scalars().all()}

    @staticmethod
    def _validate(command: SetorCommand, details: Dict[int, DetailSetor]) -> None:
        ids = command.detail_setor_ids

        missing = [i for i in ids if i not in details]
        if missing:
            raise NotFoundError(f"Detail setor with ID {', '.join(map(str, missing))} not found")

        already = [i for i in ids if details[i].tanggal_setor is not None]
        if already:
            raise ConflictError(f"Detail setor ID {', '.join(map(str, already))} already deposited")

        for item in command.items:
            detail = details[item.detail_setor_id]
            if item.qty is None:
                continue
            if item.qty <= 0:
                raise ValidationError(f"Qty for ID {detail.id} must be greater than 0")
            if item.qty > detail.qty:
                raise ValidationError(
                    f"Qty setor ({item.qty}) exceeds qty ambil ({detail.qty}) for ID {detail.id}"
                )

    @staticmethod
    def _guarded_update(db: Session, detail: DetailSetor, **values) -> None:
        """Write `values` only if the row is still pending with the qty that was validated."""
        updated = db.execute(
            update(DetailSetor)
            .where(
                DetailSetor.id == detail.id,
                DetailSetor.tanggal_setor.is_(None),
                DetailSetor.qty == detail.qty,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount
        if updated == 0:
            raise ConflictError(f"Detail setor ID {detail.id} changed while the setor was being processed")
        for key, value in values.items():
            set_committed_value(detail, key, value)

    def proses_setor(
            self,
            payload: Union[SetorCommand, Dict[str, Any], List[Any]],
            admin_id: Optional[int] = None,
            user_name: str = "KOSONGAN",
    ) -> SetorResult:
        """
        Process a deposit.

        `payload` may be a `SetorCommand` or any raw request shape accepted by
        `parse_setor_payload` (structured items, legacy `detailSetorIds`, or a
        bare list of ids).
        """
        if isinstance(payload, SetorCommand):
            command = payload
            if admin_id is not None and command.admin_id is None:
                command = SetorCommand(items=command.items, admin_id=admin_id)
        else:
            command = parse_setor_payload(payload, admin_id)

        ids = command.detail_setor_ids
        if not ids:
            raise ValidationError("Setor items cannot be empty")
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate detail setor ids in one setor")

        with self.database.session() as db:
            if command.admin_id is not None:
                UserService.require(db, command.admin_id, "Admin")
            self._validate(command, self._fetch_details(db, ids))

        with self.database.transaction() as db:
            KeuanganStore.ensure_saldo(db)
            KeuanganStore.get_saldo(db, lock=True)

            # Authoritative check: rows are locked from here until commit
            details = self._fetch_details(db, ids, lock=True)
            self._validate(command, details)

            now = self.clock.now()
            total_pemasukan = Decimal("0")
            receipts: List[SetorReceiptLine] = []
            lines_per_ambil: Dict[int, int] = {}

            for item in command.items:
                detail = details[item.detail_setor_id]
                lines_per_ambil[detail.ambil_barang_id] = lines_per_ambil.get(detail.ambil_barang_id, 0) + 1

                qty = item.qty if item.qty is not None else detail.qty
                harga_satuan = Decimal(detail.harga_satuan)
                nominal = harga_satuan * qty
                barang_nama = detail.barang_nama

                if qty == detail.qty:
                    self._guarded_update(db, detail, tanggal_setor=now)
                    target = detail
                else:
                    # Partial setor: the remainder stays pending on the existing row
                    sisa_qty = detail.qty - qty
                    self._guarded_update(db, detail, qty=sisa_qty, total_harga=harga_satuan * sisa_qty)
                    target = DetailSetor(
                        ambil_barang_id=detail.ambil_barang_id,
                        stok_harian_id=detail.stok_harian_id,
                        qty=qty,
                        harga_satuan=harga_satuan,
                        total_harga=nominal,
                        tanggal_setor=now,
                        created_at=now,
                    )
                    db.add(target)
                db.flush()

                # Stok is taken again on setor, on top of the decrement at ambil
                StokStore.decrement(db, detail.stok_harian_id, qty)

                KeuanganStore.create_detail_keuangan(
                    db,
                    detail_setor_id=target.id,
                    title=f"Setor: {barang_nama}",
                    tipe=TipeKeuanganEnum.INCOME,
                    nominal=nominal,
                    keterangan=f"Qty: {qty} x Rp{harga_satuan}",
                    created_at=now,
                )
                recompute_status(db, detail.ambil_barang_id)

                total_pemasukan += nominal
                receipts.append(SetorReceiptLine(
                    detail_setor_id=target.id,
                    barang_nama=barang_nama,
                    qty=qty,
                    total_harga=nominal,
                ))

            if command.admin_id is not None:
                for ambil_barang_id in lines_per_ambil:
                    ambil_barang = db.get(AmbilBarang, ambil_barang_id)
                    ambil_barang.setor_kepada_id = command.admin_id
                db.flush()

            saldo = KeuanganStore.update_saldo(db, total_pemasukan)

            audit = AuditService(db, self.clock)
            for ambil_barang_id, line_count in lines_per_ambil.items():
                audit.default_log(
                    entity_id=ambil_barang_id,
                    entity_type=AuditEntityEnum.SETOR,
                    description=f"Setor untuk ambil barang #{ambil_barang_id} diproses ({line_count} baris)",
                    user_name=user_name,
                )

            result = SetorResult(
                message="Setor berhasil diproses",
                total_pemasukan=total_pemasukan,
                saldo_terbaru=Decimal(saldo.total_saldo),
                details=receipts,
            )

        logger.info(
            "Setor processed for detail setor %s: +%s, saldo %s",
            ids, result.total_pemasukan, result.saldo_terbaru,
        )
        return result
