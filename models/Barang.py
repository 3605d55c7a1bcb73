from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship

from database import Base
from models.mixin.SoftDeleteMixin import SoftDeleteMixin


class Barang(Base, SoftDeleteMixin):
    __tablename__ = "barangs"

    id = Column(Integer, primary_key=True, index=True)
    nama = Column(String(255), nullable=False)
    keterangan = Column(Text, nullable=True)
    gambar = Column(String(500), nullable=True)  # stored path only
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    stok_harians = relationship("StokHarian", back_populates="barang_rel")
