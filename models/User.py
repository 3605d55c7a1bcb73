import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Enum, DateTime, Boolean
from sqlalchemy.orm import relationship

from database import Base


class UserRoleEnum(enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), nullable=False, unique=True)
    nama_lengkap = Column(String(255), nullable=False)
    nomor_telepon = Column(String(30), nullable=True)
    catatan = Column(Text, nullable=True)
    role = Column(Enum(UserRoleEnum), default=UserRoleEnum.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    ambil_barangs = relationship(
        "AmbilBarang",
        back_populates="user_rel",
        foreign_keys="AmbilBarang.user_id",
    )
