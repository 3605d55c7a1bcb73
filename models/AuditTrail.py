import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum, Index

from database import Base


class AuditEntityEnum(enum.Enum):
    BARANG = "BARANG"
    STOK_HARIAN = "STOK_HARIAN"
    AMBIL_BARANG = "AMBIL_BARANG"
    DETAIL_SETOR = "DETAIL_SETOR"
    SETOR = "SETOR"
    KEUANGAN = "KEUANGAN"


class AuditTrail(Base):
    __tablename__ = "audit_trails"

    id = Column(Integer, primary_key=True, index=True)
    entity_id = Column(String(100), nullable=False)  # ID of the thing being tracked
    entity_type = Column(Enum(AuditEntityEnum), nullable=False)
    description = Column(Text, nullable=False)  # What happened (human-readable)
    user_name = Column(String(100), nullable=False)  # Who did it
    timestamp = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_audit_entity", "entity_type", "entity_id"),
    )
