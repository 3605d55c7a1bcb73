from datetime import datetime
from decimal import Decimal

import pytest

from errors import NotFoundError, ValidationError
from models.Keuangan import TipeKeuanganEnum
from conftest import PASTEL_ID, RISOL_ID


def test_create_barang_and_list(stok_service):
    barang = stok_service.create_barang("Lemper", keterangan="isi ayam")
    assert barang.nama == "Lemper"

    names = [b.nama for b in stok_service.list_barang()]
    assert names == ["Lemper", "Pastel", "Risol"]
    assert stok_service.get_barang(barang.id).keterangan == "isi ayam"


def test_create_barang_requires_nama(stok_service):
    with pytest.raises(ValidationError):
        stok_service.create_barang("  ")


def test_get_missing_barang(stok_service):
    with pytest.raises(NotFoundError):
        stok_service.get_barang(99)


def test_create_stok_without_modal_leaves_ledger_alone(stok_service, state):
    stok = stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("2000"), stok=40)

    assert stok.stok == 40
    assert stok.barang_rel.nama == "Risol"
    assert state.ledger_count() == 0
    assert state.saldo() == Decimal("0")


def test_create_stok_with_modal_needs_saldo(stok_service, state):
    with pytest.raises(ValidationError):
        stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("1000"), stok=10, modal=Decimal("5000"))

    assert state.ledger_count() == 0
    assert state.saldo() == Decimal("0")


def test_create_stok_with_modal_posts_expense(stok_service, keuangan_service, state):
    keuangan_service.create_pemasukan("Kas awal", Decimal("20000"))

    stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("1000"), stok=10, modal=Decimal("5000"))

    entry = keuangan_service.get_histori().data[0]
    assert entry.tipe == TipeKeuanganEnum.EXPENSE
    assert entry.title == "Modal: Risol"
    assert entry.nominal == Decimal("5000")
    assert state.saldo() == Decimal("15000")


def test_refund_scenario(stok_service_negative, keuangan_service, state):
    stok = stok_service_negative.create_stok_harian(
        barang_id=RISOL_ID, harga=Decimal("1000"), stok=10, modal=Decimal("5000")
    )
    assert state.saldo() == Decimal("-5000")
    assert state.ledger_count() == 1

    result = stok_service_negative.delete_stok_harian(stok.id)

    assert result["refund_modal"] == Decimal("5000")
    assert state.saldo() == Decimal("0")
    entry = keuangan_service.get_histori().data[0]
    assert entry.tipe == TipeKeuanganEnum.INCOME
    assert entry.nominal == Decimal("5000")
    assert state.ledger_sum() == state.saldo()

    with pytest.raises(NotFoundError):
        stok_service_negative.get_stok(stok.id)


def test_delete_stok_with_allocations_is_rejected(make_stok, ambil, stok_service, state):
    stok = make_stok(stok=10)
    ambil([(stok.id, 2)])

    with pytest.raises(ValidationError):
        stok_service.delete_stok_harian(stok.id)
    assert state.stok(stok.id) == 8


def test_update_stok_modal_posts_delta(stok_service, keuangan_service, state):
    keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    stok = stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("1000"), stok=10, modal=Decimal("3000"))
    assert state.saldo() == Decimal("7000")

    stok_service.update_stok_harian(stok.id, modal=Decimal("5000"))
    assert state.saldo() == Decimal("5000")

    stok_service.update_stok_harian(stok.id, modal=Decimal("1000"))
    assert state.saldo() == Decimal("9000")

    entries = keuangan_service.get_histori().data
    assert entries[0].tipe == TipeKeuanganEnum.INCOME
    assert entries[0].title == "Refund modal: Risol"
    assert entries[0].nominal == Decimal("4000")
    assert state.ledger_sum() == state.saldo()


def test_update_stok_modal_increase_needs_saldo(stok_service, keuangan_service, state):
    keuangan_service.create_pemasukan("Kas awal", Decimal("3000"))
    stok = stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("1000"), stok=10, modal=Decimal("3000"))

    with pytest.raises(ValidationError):
        stok_service.update_stok_harian(stok.id, modal=Decimal("4000"))

    assert stok_service.get_stok(stok.id).modal == Decimal("3000")
    assert state.saldo() == Decimal("0")


def test_update_harga_keeps_snapshotted_line_items(make_stok, ambil, stok_service, state):
    stok = make_stok(harga="1000", stok=10)
    ambil_barang = ambil([(stok.id, 3)])

    updated = stok_service.update_stok_harian(stok.id, harga=Decimal("1500"), keterangan="naik harga")

    assert updated.harga == Decimal("1500")
    assert updated.keterangan == "naik harga"
    line = state.detail(ambil_barang.detail_setors[0].id)
    assert line.harga_satuan == Decimal("1000")
    assert line.total_harga == Decimal("3000")


def test_update_stok_rejects_negative_qty(make_stok, stok_service):
    stok = make_stok()
    with pytest.raises(ValidationError):
        stok_service.update_stok_harian(stok.id, stok=-1)
    with pytest.raises(NotFoundError):
        stok_service.update_stok_harian(999, stok=1)


@pytest.mark.parametrize("harga, qty", [("0", 10), ("1000", 0)])
def test_create_stok_rejects_non_positive(stok_service, harga, qty):
    with pytest.raises(ValidationError):
        stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal(harga), stok=qty)


def test_create_stok_unknown_barang(stok_service):
    with pytest.raises(NotFoundError):
        stok_service.create_stok_harian(barang_id=99, harga=Decimal("1000"), stok=1)


def test_hari_ini_and_histori_counters(make_stok, ambil, setor_service, stok_service, stok_service_negative):
    risol = make_stok(harga="1000", stok=20)
    pastel = make_stok(harga="2000", stok=20, barang_id=PASTEL_ID)
    stok_service_negative.create_stok_harian(
        barang_id=RISOL_ID, harga=Decimal("1000"), stok=5, tanggal_edar=datetime(2024, 5, 9, 7, 0, 0)
    )

    first = ambil([(risol.id, 3), (pastel.id, 1)])
    ambil([(risol.id, 2)], user_id=3)
    setor_service.proses_setor([first.detail_setors[0].id])

    today = {s.id: s for s in stok_service.get_stok_hari_ini()}
    assert set(today) == {risol.id, pastel.id}
    assert today[risol.id].jumlah_ambil == 5
    assert today[risol.id].jumlah_penyetor == 1
    assert today[pastel.id].jumlah_ambil == 1
    assert today[pastel.id].jumlah_penyetor == 0

    histori = stok_service.get_histori_stok(page=1, limit=2)
    assert histori.total == 3
    assert len(histori.data) == 2
    assert all(s.tanggal_edar.date().isoformat() == "2024-05-10" for s in histori.data)


def test_update_barang(stok_service):
    barang = stok_service.update_barang(RISOL_ID, nama="  Risol Mayo ", keterangan="pedas")
    assert barang.nama == "Risol Mayo"
    assert stok_service.get_barang(RISOL_ID).keterangan == "pedas"


def test_update_barang_rejects_blank_nama(stok_service):
    with pytest.raises(ValidationError):
        stok_service.update_barang(RISOL_ID, nama=" ")
    assert stok_service.get_barang(RISOL_ID).nama == "Risol"


def test_soft_delete_barang_keeps_stok_history(make_stok, ambil, stok_service):
    stok = make_stok(harga="1000", stok=10)
    ambil([(stok.id, 2)])

    deleted = stok_service.delete_barang(RISOL_ID)
    assert deleted.is_deleted is True
    assert deleted.deleted_at is not None

    assert [b.id for b in stok_service.list_barang()] == [PASTEL_ID]
    assert [b.id for b in stok_service.list_barang_with_deleted()] == [PASTEL_ID, RISOL_ID]
    assert stok_service.get_stok(stok.id).barang_rel.nama == "Risol"
    assert stok_service.get_histori_stok().total == 1


def test_deleted_barang_cannot_be_edited_or_stocked(stok_service):
    stok_service.delete_barang(RISOL_ID)

    with pytest.raises(ValidationError):
        stok_service.delete_barang(RISOL_ID)
    with pytest.raises(ValidationError):
        stok_service.update_barang(RISOL_ID, nama="Risol Baru")
    with pytest.raises(ValidationError):
        stok_service.create_stok_harian(barang_id=RISOL_ID, harga=Decimal("1000"), stok=5)


def test_restore_barang(stok_service):
    with pytest.raises(ValidationError):
        stok_service.restore_barang(RISOL_ID)

    stok_service.delete_barang(RISOL_ID)
    restored = stok_service.restore_barang(RISOL_ID)
    assert restored.is_deleted is False
    assert restored.deleted_at is None
    assert [b.id for b in stok_service.list_barang()] == [PASTEL_ID, RISOL_ID]


def test_delete_missing_barang(stok_service):
    with pytest.raises(NotFoundError):
        stok_service.delete_barang(99)


def test_rows_read_in_a_read_session_stay_loaded(make_stok, ambil, state):
    stok = make_stok(harga="1000", stok=10)
    ambil_barang = ambil([(stok.id, 2)])

    line = state.detail(ambil_barang.detail_setors[0].id)
    assert line.qty == 2
    assert line.stok_harian_id == stok.id
    assert line.total_harga == Decimal("2000")
    assert state.ambil_barang(ambil_barang.id).keterangan is None
