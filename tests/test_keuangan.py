from datetime import date
from decimal import Decimal

import pytest

from errors import NotFoundError, ValidationError
from models.AuditTrail import AuditEntityEnum
from models.Keuangan import TipeKeuanganEnum
from services.audit_services import AuditService
from services.keuangan_services import KeuanganService


def test_saldo_starts_at_zero(keuangan_service):
    saldo = keuangan_service.get_saldo()
    assert saldo.id == 1
    assert saldo.total_saldo == Decimal("0")


def test_pemasukan_and_pengeluaran_move_saldo(keuangan_service, state):
    result = keuangan_service.create_pemasukan("Donasi alumni", Decimal("50000"))
    assert result.saldo_terbaru == Decimal("50000")
    assert result.transaksi.tipe == TipeKeuanganEnum.INCOME

    result = keuangan_service.create_pengeluaran("Beli plastik", Decimal("12500"), keterangan="2 pak")
    assert result.saldo_terbaru == Decimal("37500")
    assert result.transaksi.keterangan == "2 pak"

    assert state.saldo() == Decimal("37500")
    assert state.ledger_sum() == state.saldo()


def test_pengeluaran_requires_enough_saldo(keuangan_service, state):
    keuangan_service.create_pemasukan("Kas awal", Decimal("1000"))

    with pytest.raises(ValidationError):
        keuangan_service.create_pengeluaran("Sewa meja", Decimal("1500"))

    assert state.saldo() == Decimal("1000")
    assert state.ledger_count() == 1


def test_pengeluaran_allowed_negative_when_configured(database, clock, state):
    service = KeuanganService(database, clock, allow_negative_saldo=True)
    result = service.create_pengeluaran("Sewa meja", Decimal("1500"))
    assert result.saldo_terbaru == Decimal("-1500")
    assert state.ledger_sum() == Decimal("-1500")


@pytest.mark.parametrize("title, nominal", [("", Decimal("10")), ("   ", Decimal("10")), ("Kas", Decimal("0"))])
def test_manual_entry_rejects_bad_input(keuangan_service, title, nominal):
    with pytest.raises(ValidationError):
        keuangan_service.create_pemasukan(title, nominal)


def test_delete_latest_manual_entry_reverses_saldo(keuangan_service, state):
    keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    expense = keuangan_service.create_pengeluaran("Beli gas", Decimal("3000"))

    saldo = keuangan_service.delete_detail_keuangan(expense.transaksi.id)

    assert saldo.total_saldo == Decimal("10000")
    assert state.ledger_count() == 1
    assert state.ledger_sum() == state.saldo()


def test_delete_only_latest_entry(keuangan_service, state):
    first = keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    keuangan_service.create_pemasukan("Donasi", Decimal("2000"))

    with pytest.raises(ValidationError):
        keuangan_service.delete_detail_keuangan(first.transaksi.id)

    assert state.saldo() == Decimal("12000")
    assert state.ledger_count() == 2


def test_delete_missing_entry(keuangan_service):
    with pytest.raises(NotFoundError):
        keuangan_service.delete_detail_keuangan(999)


def test_delete_setor_entry_is_rejected(make_stok, ambil, setor_service, keuangan_service, state):
    stok = make_stok(harga="1000", stok=10)
    ambil_barang = ambil([(stok.id, 2)])
    setor_service.proses_setor([ambil_barang.detail_setors[0].id])

    entry_id = keuangan_service.get_histori().data[0].id
    with pytest.raises(ValidationError):
        keuangan_service.delete_detail_keuangan(entry_id)
    assert state.saldo() == Decimal("2000")


def test_detail_keuangan_flags_last_transaction(keuangan_service):
    first = keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    second = keuangan_service.create_pemasukan("Donasi", Decimal("2000"))

    assert keuangan_service.get_detail_keuangan(second.transaksi.id).is_last_transaction is True
    assert keuangan_service.get_detail_keuangan(first.transaksi.id).is_last_transaction is False

    with pytest.raises(NotFoundError):
        keuangan_service.get_detail_keuangan(12345)


def test_histori_is_newest_first_and_paginated(keuangan_service):
    for i in range(5):
        keuangan_service.create_pemasukan(f"Kas {i}", Decimal("100"))

    page = keuangan_service.get_histori(page=1, limit=2)
    assert page.total == 5
    assert page.total_pages == 3
    assert [e.title for e in page.data] == ["Kas 4", "Kas 3"]

    last_page = keuangan_service.get_histori(page=3, limit=2)
    assert [e.title for e in last_page.data] == ["Kas 0"]


def test_histori_by_month_includes_penyetor(make_stok, ambil, setor_service, keuangan_service):
    keuangan_service.create_pemasukan("Kas awal", Decimal("100"))
    stok = make_stok(harga="1500", stok=10)
    ambil_barang = ambil([(stok.id, 2)])
    setor_service.proses_setor([ambil_barang.detail_setors[0].id])

    entries = keuangan_service.get_histori_by_month(2024, 5)
    assert len(entries) == 2
    assert entries[0].title == "Setor: Risol"
    assert entries[0].penyetor.nama_lengkap == "Andi Pratama"
    assert entries[1].penyetor is None

    assert keuangan_service.get_histori_by_month(2024, 6) == []
    with pytest.raises(ValidationError):
        keuangan_service.get_histori_by_month(2024, 13)


def test_laporan_harian(keuangan_service):
    keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    keuangan_service.create_pemasukan("Donasi", Decimal("5000"))
    keuangan_service.create_pengeluaran("Beli gas", Decimal("3000"))

    laporan = keuangan_service.get_laporan_harian(date(2024, 5, 10))
    assert laporan.tanggal == "2024-05-10"
    assert laporan.pemasukan.total == Decimal("15000")
    assert laporan.pemasukan.count == 2
    assert laporan.pengeluaran.total == Decimal("3000")
    assert laporan.pengeluaran.count == 1
    assert laporan.selisih == Decimal("12000")
    assert len(laporan.transaksi) == 3

    empty = keuangan_service.get_laporan_harian(date(2024, 5, 11))
    assert empty.pemasukan.count == 0
    assert empty.selisih == Decimal("0")


def test_laporan_bulanan(keuangan_service, clock):
    keuangan_service.create_pemasukan("Kas awal", Decimal("10000"))
    clock.current = clock.current.replace(day=12)
    keuangan_service.create_pengeluaran("Beli gas", Decimal("4000"))

    laporan = keuangan_service.get_laporan_bulanan("2024-05")
    assert laporan.bulan == "2024-05"
    assert laporan.pemasukan.total == Decimal("10000")
    assert laporan.pengeluaran.total == Decimal("4000")
    assert laporan.selisih == Decimal("6000")
    assert laporan.jumlah_hari_aktif == 2


@pytest.mark.parametrize("bulan", ["2024", "2024-13", "Mei-2024", "2024-05-01"])
def test_laporan_bulanan_rejects_bad_month(keuangan_service, bulan):
    with pytest.raises(ValidationError):
        keuangan_service.get_laporan_bulanan(bulan)


def test_manual_entries_are_audited(keuangan_service, database, clock):
    result = keuangan_service.create_pemasukan("Kas awal", Decimal("10000"), user_name="sari")

    with database.session() as db:
        history = AuditService(db, clock).history(AuditEntityEnum.KEUANGAN, result.transaksi.id)
    assert len(history) == 1
    assert history[0].user_name == "sari"
    assert "Kas awal" in history[0].description
