from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BarangCreate(BaseModel):
    nama: str
    keterangan: Optional[str] = None
    gambar: Optional[str] = None


class BarangUpdate(BaseModel):
    nama: Optional[str] = None
    keterangan: Optional[str] = None
    gambar: Optional[str] = None


class BarangOut(BarangCreate):
    id: int
    created_at: datetime
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
