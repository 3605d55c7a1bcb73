import enum
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from models.User import UserRoleEnum


class UserBrief(BaseModel):
    id: int
    username: str
    nama_lengkap: str
    nomor_telepon: Optional[str] = None
    role: UserRoleEnum

    model_config = ConfigDict(from_attributes=True)


class UserOut(UserBrief):
    catatan: Optional[str] = None
    is_active: bool = True


class StatusHarianEnum(str, enum.Enum):
    SUDAH_SETOR = "SUDAH_SETOR"
    BELUM_SETOR = "BELUM_SETOR"
    BELUM_AMBIL = "BELUM_AMBIL"


class StatusKalenderEnum(str, enum.Enum):
    HIJAU = "HIJAU"    # everything taken that day was deposited
    KUNING = "KUNING"  # took stock, some still pending
    MERAH = "MERAH"    # weekday without an ambil barang
    ABU = "ABU"        # weekend without an ambil barang


class BarangDiambil(BaseModel):
    barang_id: int
    nama: str
    qty: int
    total_harga: Decimal


class UserTodayStatus(BaseModel):
    id: int
    nama_lengkap: str
    username: str
    nomor_telepon: Optional[str] = None
    catatan: Optional[str] = None
    status: StatusHarianEnum
    total_ambil: int = 0
    total_setor: int = 0
    total_harus_setor: Decimal = Decimal("0")
    ambil_barang_count: int = 0
    barang_list: List[BarangDiambil] = []


class KalenderDetail(BaseModel):
    count: int
    total_ambil: int
    total_setor: int


class KalenderHari(BaseModel):
    tanggal: date
    status: StatusKalenderEnum
    detail: Optional[KalenderDetail] = None


class UserMonthlyStats(BaseModel):
    user: UserOut
    bulan: str
    calendar: List[KalenderHari]
