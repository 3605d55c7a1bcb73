# models/AmbilBarang.py
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, ForeignKey, Numeric, Text, DateTime, Enum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from database import Base


class StatusAmbilBarangEnum(enum.Enum):
    NONE_DEPOSITED = "NONE_DEPOSITED"
    PARTIALLY_DEPOSITED = "PARTIALLY_DEPOSITED"
    FULLY_DEPOSITED = "FULLY_DEPOSITED"


class AmbilBarang(Base):
    __tablename__ = "ambil_barangs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    setor_kepada_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    keterangan = Column(Text, nullable=True)

    # Cached aggregate of detail_setors; recomputed after every deposit
    status = Column(
        Enum(StatusAmbilBarangEnum),
        default=StatusAmbilBarangEnum.NONE_DEPOSITED,
        nullable=False,
        index=True,
    )
    tanggal_ambil = Column(DateTime, default=datetime.now, nullable=False)

    user_rel = relationship("User", foreign_keys=[user_id], back_populates="ambil_barangs")
    setor_kepada_rel = relationship("User", foreign_keys=[setor_kepada_id])

    detail_setors = relationship(
        "DetailSetor",
        back_populates="ambil_barang_rel",
        cascade="all, delete-orphan",
        order_by="DetailSetor.id",
    )

    @property
    def user_nama(self) -> str:
        return self.user_rel.nama_lengkap if self.user_rel else "-"


class DetailSetor(Base):
    __tablename__ = "detail_setors"

    id = Column(Integer, primary_key=True, index=True)
    ambil_barang_id = Column(Integer, ForeignKey("ambil_barangs.id", ondelete="CASCADE"), nullable=False)
    stok_harian_id = Column(Integer, ForeignKey("stok_harians.id"), nullable=False)

    qty = Column(Integer, nullable=False)
    harga_satuan = Column(Numeric(24, 2), nullable=False, default=Decimal("0"))  # snapshot of stok.harga
    total_harga = Column(Numeric(24, 2), nullable=False, default=Decimal("0"))   # qty * harga_satuan

    tanggal_setor = Column(DateTime, nullable=True)  # NULL = belum disetor
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    ambil_barang_rel = relationship("AmbilBarang", back_populates="detail_setors")
    stok_harian_rel = relationship("StokHarian", back_populates="detail_setors")
    detail_keuangans = relationship("DetailKeuangan", back_populates="detail_setor_rel")

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_detail_setor_qty_positive"),
        Index("ix_detail_setor_stok_ambil", "stok_harian_id", "ambil_barang_id"),
    )

    @property
    def is_setor(self) -> bool:
        return self.tanggal_setor is not None

    @property
    def barang_nama(self) -> str:
        if self.stok_harian_rel and self.stok_harian_rel.barang_rel:
            return self.stok_harian_rel.barang_rel.nama
        return "-"
