from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.BarangSchemas import BarangOut


class StokHarianCreate(BaseModel):
    barang_id: int = Field(alias="barangId")
    harga: Decimal = Field(gt=0, description="Harga jual per unit")
    stok: int = Field(gt=0, description="Initial quantity")
    modal: Decimal = Field(ge=0, default=Decimal("0"))
    keterangan: Optional[str] = None
    tanggal_edar: datetime = Field(alias="tanggalEdar")

    model_config = ConfigDict(populate_by_name=True)


class StokHarianUpdate(BaseModel):
    harga: Optional[Decimal] = Field(default=None, gt=0)
    stok: Optional[int] = Field(default=None, ge=0)
    modal: Optional[Decimal] = Field(default=None, ge=0)
    keterangan: Optional[str] = None
    tanggal_edar: Optional[datetime] = Field(default=None, alias="tanggalEdar")

    model_config = ConfigDict(populate_by_name=True)


class StokHarianOut(BaseModel):
    id: int
    barang_id: int
    harga: Decimal
    modal: Decimal
    stok: int
    keterangan: Optional[str] = None
    tanggal_edar: datetime
    created_at: datetime
    barang_rel: Optional[BarangOut] = None

    model_config = ConfigDict(from_attributes=True)


class StokHarianSummary(StokHarianOut):
    """Read projection: derived counters, never stored."""
    jumlah_ambil: int = 0
    jumlah_penyetor: int = 0
