from decimal import Decimal

import pytest

from errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from models.AmbilBarang import StatusAmbilBarangEnum
from models.AuditTrail import AuditEntityEnum
from models.Keuangan import TipeKeuanganEnum
from services.audit_services import AuditService
from conftest import ADMIN_ID, PASTEL_ID, SELLER_2_ID


def test_concrete_scenario(make_stok, ambil, setor_service, keuangan_service, state):
    stok = make_stok(harga="1000", stok=10)
    ambil_barang = ambil([(stok.id, 3)])
    line = ambil_barang.detail_setors[0]

    assert state.stok(stok.id) == 7
    assert ambil_barang.status == StatusAmbilBarangEnum.NONE_DEPOSITED
    assert line.qty == 3 and line.total_harga == Decimal("3000")

    result = setor_service.proses_setor([line.id])

    assert result.message == "Setor berhasil diproses"
    assert result.total_pemasukan == Decimal("3000")
    assert result.saldo_terbaru == Decimal("3000")
    assert [(d.barang_nama, d.qty, d.total_harga) for d in result.details] == [("Risol", 3, Decimal("3000"))]

    assert state.detail(line.id).tanggal_setor is not None
    assert state.stok(stok.id) == 4
    assert state.saldo() == Decimal("3000")
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.FULLY_DEPOSITED

    entries = keuangan_service.get_histori().data
    assert len(entries) == 1
    assert entries[0].tipe == TipeKeuanganEnum.INCOME
    assert entries[0].nominal == Decimal("3000")
    assert entries[0].detail_setor_id == line.id
    assert entries[0].title == "Setor: Risol"
    assert entries[0].keterangan.startswith("Qty: 3 x Rp1000")


def test_double_setor_is_conflict(make_stok, ambil, setor_service, state):
    stok = make_stok(harga="1000", stok=10)
    line_id = ambil([(stok.id, 2)]).detail_setors[0].id

    setor_service.proses_setor([line_id])
    with pytest.raises(ConflictError):
        setor_service.proses_setor([line_id])

    assert state.saldo() == Decimal("2000")
    assert state.ledger_count() == 1


def test_invalid_third_id_changes_nothing(make_stok, ambil, setor_service, state):
    stok = make_stok(harga="1000", stok=20)
    ambil_barang = ambil([(stok.id, 2), (stok.id, 3)])
    ids = [d.id for d in ambil_barang.detail_setors]

    with pytest.raises(NotFoundError):
        setor_service.proses_setor(ids + [9999])

    assert state.stok(stok.id) == 15
    assert all(state.detail(i).tanggal_setor is None for i in ids)
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.NONE_DEPOSITED
    assert state.saldo() == Decimal("0")
    assert state.ledger_count() == 0


def test_insufficient_stock_inside_transaction_rolls_back(make_stok, ambil, setor_service, state):
    risol = make_stok(harga="1000", stok=10)
    pastel = make_stok(harga="2000", stok=4, barang_id=PASTEL_ID)
    ambil_barang = ambil([(risol.id, 2), (pastel.id, 4)])
    ids = [d.id for d in ambil_barang.detail_setors]

    # Pastel is already at 0, so taking it off the shelf again on setor fails
    with pytest.raises(InsufficientStockError):
        setor_service.proses_setor(ids)

    assert state.stok(risol.id) == 8
    assert state.stok(pastel.id) == 0
    assert all(state.detail(i).tanggal_setor is None for i in ids)
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.NONE_DEPOSITED
    assert state.saldo() == Decimal("0")
    assert state.ledger_count() == 0


def test_status_recomputation(make_stok, ambil, setor_service, state):
    stok = make_stok(harga="1000", stok=20)
    ambil_barang = ambil([(stok.id, 1), (stok.id, 2)])
    first, second = [d.id for d in ambil_barang.detail_setors]

    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.NONE_DEPOSITED
    setor_service.proses_setor([first])
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.PARTIALLY_DEPOSITED
    setor_service.proses_setor([second])
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.FULLY_DEPOSITED


def test_multi_item_setor_accumulates_total(make_stok, ambil, setor_service, state):
    risol = make_stok(harga="1000", stok=20)
    pastel = make_stok(harga="2500", stok=20, barang_id=PASTEL_ID)
    first = ambil([(risol.id, 2), (pastel.id, 2)])
    second = ambil([(risol.id, 4)], user_id=SELLER_2_ID)

    ids = [d.id for d in first.detail_setors] + [second.detail_setors[0].id]
    result = setor_service.proses_setor(ids)

    assert result.total_pemasukan == Decimal("11000")
    assert len(result.details) == 3
    assert state.saldo() == Decimal("11000")
    assert state.ledger_count() == 3
    assert state.ledger_sum() == state.saldo()


def test_partial_setor_splits_line_item(make_stok, ambil, setor_service, state):
    stok = make_stok(harga="1500", stok=20)
    ambil_barang = ambil([(stok.id, 5)])
    line_id = ambil_barang.detail_setors[0].id

    result = setor_service.proses_setor({"items": [{"detailSetorId": line_id, "qty": 2}]})

    assert result.total_pemasukan == Decimal("3000")
    receipt = result.details[0]
    assert receipt.qty == 2
    assert receipt.detail_setor_id != line_id

    remainder = state.detail(line_id)
    assert remainder.qty == 3
    assert remainder.total_harga == Decimal("4500")
    assert remainder.tanggal_setor is None

    deposited = state.detail(receipt.detail_setor_id)
    assert deposited.qty == 2
    assert deposited.ambil_barang_id == ambil_barang.id
    assert deposited.tanggal_setor is not None

    assert state.stok(stok.id) == 13
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.PARTIALLY_DEPOSITED

    setor_service.proses_setor([line_id])
    assert state.ambil_barang(ambil_barang.id).status == StatusAmbilBarangEnum.FULLY_DEPOSITED
    assert state.saldo() == Decimal("7500")


@pytest.mark.parametrize("qty", [0, -1, 6])
def test_partial_setor_rejects_bad_qty(make_stok, ambil, setor_service, state, qty):
    stok = make_stok(stok=20)
    line_id = ambil([(stok.id, 5)]).detail_setors[0].id

    with pytest.raises(ValidationError):
        setor_service.proses_setor({"items": [{"detailSetorId": line_id, "qty": qty}]})
    assert state.detail(line_id).qty == 5
    assert state.saldo() == Decimal("0")


def test_duplicate_ids_rejected(make_stok, ambil, setor_service):
    stok = make_stok()
    line_id = ambil([(stok.id, 1)]).detail_setors[0].id
    with pytest.raises(ValidationError):
        setor_service.proses_setor([line_id, line_id])


def test_legacy_shape_with_admin_sets_recipient(make_stok, ambil, setor_service, state):
    stok = make_stok(harga="1000", stok=10)
    ambil_barang = ambil([(stok.id, 2)], admin_id=ADMIN_ID)
    line_id = ambil_barang.detail_setors[0].id

    result = setor_service.proses_setor({"detailSetorIds": [line_id], "adminId": ADMIN_ID})

    assert result.total_pemasukan == Decimal("2000")
    assert state.ambil_barang(ambil_barang.id).setor_kepada_id == ADMIN_ID


def test_unknown_admin_is_not_found(make_stok, ambil, setor_service, state):
    stok = make_stok()
    line_id = ambil([(stok.id, 1)]).detail_setors[0].id

    with pytest.raises(NotFoundError):
        setor_service.proses_setor([line_id], admin_id=99)
    assert state.detail(line_id).tanggal_setor is None


def test_mixed_shapes_rejected(make_stok, ambil, setor_service):
    stok = make_stok()
    line_id = ambil([(stok.id, 1)]).detail_setors[0].id
    with pytest.raises(ValidationError):
        setor_service.proses_setor([line_id, {"detailSetorId": line_id, "qty": 1}])


def test_setor_uses_snapshot_price(make_stok, ambil, setor_service, stok_service):
    stok = make_stok(harga="1000", stok=10)
    line_id = ambil([(stok.id, 2)]).detail_setors[0].id
    stok_service.update_stok_harian(stok.id, harga="2000")

    result = setor_service.proses_setor([line_id])
    assert result.total_pemasukan == Decimal("2000")


def test_setor_writes_audit_rows(make_stok, ambil, setor_service, database, clock):
    stok = make_stok()
    ambil_barang = ambil([(stok.id, 1), (stok.id, 1)])

    setor_service.proses_setor([d.id for d in ambil_barang.detail_setors], user_name="sari")

    with database.session() as db:
        history = AuditService(db, clock).history(AuditEntityEnum.SETOR, ambil_barang.id)
    assert len(history) == 1
    assert history[0].user_name == "sari"
    assert "2 baris" in history[0].description


def test_saldo_matches_ledger_over_mixed_operations(
        ambil, setor_service, keuangan_service, stok_service_negative, detail_setor_service, state
):
    keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    stok = stok_service_negative.create_stok_harian(barang_id=1, harga=Decimal("1000"), stok=30, modal=Decimal("4000"))
    assert state.ledger_sum() == state.saldo()

    ambil_barang = ambil([(stok.id, 3), (stok.id, 2)])
    detail_setor_service.update_detail_setor_qty(ambil_barang.detail_setors[1].id, 4)
    setor_service.proses_setor({"items": [{"detailSetorId": ambil_barang.detail_setors[0].id, "qty": 1}]})
    assert state.ledger_sum() == state.saldo()

    keuangan_service.create_pengeluaran("Beli plastik", Decimal("500"))
    stok_service_negative.update_stok_harian(stok.id, modal=Decimal("2500"))
    assert state.ledger_sum() == state.saldo()

    setor_service.proses_setor([ambil_barang.detail_setors[1].id])
    assert state.ledger_sum() == state.saldo()
    assert state.saldo() == Decimal("10000") - Decimal("4000") + Decimal("1000") - Decimal("500") + Decimal("1500") + Decimal("4000")
