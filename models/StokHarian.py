from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, Numeric, Text, DateTime, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from database import Base


class StokHarian(Base):
    """
    One day's release of a single barang.

    Contoh:
    - id=1: Risol 40 pcs @ 2,000 (tanggal_edar: 2025-10-12), modal 50,000
    - id=2: Risol 30 pcs @ 2,500 (tanggal_edar: 2025-10-13), modal 45,000

    `stok` is what is still on the shelf. It only goes down through
    acquisitions/deposits and only comes back through compensating edits.
    """
    __tablename__ = "stok_harians"

    id = Column(Integer, primary_key=True, autoincrement=True)
    barang_id = Column(Integer, ForeignKey("barangs.id"), nullable=False, index=True)

    harga = Column(Numeric(24, 2), nullable=False)                       # harga jual per unit
    modal = Column(Numeric(24, 2), nullable=False, default=Decimal("0"))  # biaya modal batch
    stok = Column(Integer, nullable=False)
    keterangan = Column(Text, nullable=True)

    tanggal_edar = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    barang_rel = relationship("Barang", back_populates="stok_harians")
    detail_setors = relationship("DetailSetor", back_populates="stok_harian_rel")

    __table_args__ = (
        CheckConstraint("stok >= 0", name="ck_stok_harian_stok_non_negative"),
        Index("ix_stok_harian_barang_tanggal", "barang_id", "tanggal_edar"),
    )

    @property
    def barang_nama(self) -> str:
        return self.barang_rel.nama if self.barang_rel else "-"
