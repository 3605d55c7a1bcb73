import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, Text, DateTime, Enum, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from database import Base

SALDO_ID = 1


class TipeKeuanganEnum(enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Keuangan(Base):
    """Singleton row (id=1) holding the running cash balance."""
    __tablename__ = "keuangans"

    id = Column(Integer, primary_key=True)
    total_saldo = Column(Numeric(24, 2), nullable=False, default=Decimal("0"))
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)


class DetailKeuangan(Base):
    """Immutable ledger entry. Balance == sum of signed nominal over all rows."""
    __tablename__ = "detail_keuangans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Nullable: manual entries have no detail_setor
    detail_setor_id = Column(Integer, ForeignKey("detail_setors.id"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    tipe = Column(Enum(TipeKeuanganEnum), nullable=False, index=True)
    nominal = Column(Numeric(24, 2), nullable=False)
    keterangan = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    detail_setor_rel = relationship("DetailSetor", back_populates="detail_keuangans")

    __table_args__ = (
        CheckConstraint("nominal > 0", name="ck_detail_keuangan_nominal_positive"),
        Index("ix_detail_keuangan_created", "created_at", "id"),
    )

    @property
    def signed_nominal(self) -> Decimal:
        if self.tipe == TipeKeuanganEnum.INCOME:
            return Decimal(self.nominal)
        return -Decimal(self.nominal)

    @property
    def is_manual(self) -> bool:
        return self.detail_setor_id is None
