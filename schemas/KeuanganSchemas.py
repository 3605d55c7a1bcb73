from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.Keuangan import TipeKeuanganEnum


class SaldoOut(BaseModel):
    id: int
    total_saldo: Decimal
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransaksiCreate(BaseModel):
    title: str
    nominal: Decimal = Field(gt=0)
    keterangan: Optional[str] = None


class PenyetorOut(BaseModel):
    id: int
    nama_lengkap: str


class DetailKeuanganOut(BaseModel):
    id: int
    detail_setor_id: Optional[int] = None
    title: str
    tipe: TipeKeuanganEnum
    nominal: Decimal
    keterangan: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DetailKeuanganDetail(DetailKeuanganOut):
    is_last_transaction: bool = False
    penyetor: Optional[PenyetorOut] = None


class TransaksiResult(BaseModel):
    message: str
    transaksi: DetailKeuanganOut
    saldo_terbaru: Decimal


class RingkasanTipe(BaseModel):
    total: Decimal = Decimal("0")
    count: int = 0


class LaporanHarian(BaseModel):
    tanggal: str
    pemasukan: RingkasanTipe
    pengeluaran: RingkasanTipe
    selisih: Decimal
    transaksi: List[DetailKeuanganOut] = []


class LaporanBulanan(BaseModel):
    bulan: str
    pemasukan: RingkasanTipe
    pengeluaran: RingkasanTipe
    selisih: Decimal
    jumlah_hari_aktif: int
