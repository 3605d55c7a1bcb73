from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.AmbilBarang import StatusAmbilBarangEnum
from schemas.StokSchemas import StokHarianOut
from schemas.UserSchemas import UserBrief


class AmbilBarangItemCreate(BaseModel):
    stok_harian_id: int = Field(alias="stokHarianId")
    qty: int = Field(gt=0, description="Quantity must be greater than 0")

    model_config = ConfigDict(populate_by_name=True)


class AmbilBarangCreate(BaseModel):
    user_id: int = Field(alias="userId")
    setor_kepada_id: int = Field(alias="setorKepadaId")
    keterangan: Optional[str] = None
    items: List[AmbilBarangItemCreate] = []

    model_config = ConfigDict(populate_by_name=True)


class KeteranganUpdate(BaseModel):
    keterangan: Optional[str] = None


class DetailSetorQtyUpdate(BaseModel):
    qty: int = Field(gt=0)


class DetailSetorOut(BaseModel):
    id: int
    ambil_barang_id: int
    stok_harian_id: int
    qty: int
    harga_satuan: Decimal
    total_harga: Decimal
    tanggal_setor: Optional[datetime] = None
    created_at: datetime
    stok_harian_rel: Optional[StokHarianOut] = None

    model_config = ConfigDict(from_attributes=True)


class AmbilBarangOut(BaseModel):
    id: int
    user_id: int
    setor_kepada_id: Optional[int] = None
    keterangan: Optional[str] = None
    status: StatusAmbilBarangEnum
    tanggal_ambil: datetime
    user_rel: Optional[UserBrief] = None
    setor_kepada_rel: Optional[UserBrief] = None
    detail_setors: List[DetailSetorOut] = []

    model_config = ConfigDict(from_attributes=True)


class DetailSetorDetail(DetailSetorOut):
    """Single line item with its parent acquisition header."""
    seller: Optional[UserBrief] = None
    setor_kepada: Optional[UserBrief] = None
    ambil_barang_status: StatusAmbilBarangEnum
    is_last_transaction: bool = False
