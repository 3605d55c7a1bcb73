from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from database import Database
from errors import NotFoundError, ValidationError
from models.AmbilBarang import AmbilBarang, DetailSetor
from models.StokHarian import StokHarian
from models.User import User
from schemas.UserSchemas import (
    BarangDiambil, KalenderDetail, KalenderHari, StatusHarianEnum, StatusKalenderEnum,
    UserMonthlyStats, UserOut, UserTodayStatus
)
from utils import day_bounds, month_bounds

logger = logging.getLogger(__name__)


class UserService:
    """
    Identity lookups plus the per-seller read projections used by the admin
    pages: today's deposit status and a monthly calendar.

    `find` and `require` are plain helpers used inside other workflows'
    sessions; the instance methods open their own read session.
    """

    def __init__(self, database: Database = None, clock=None):
        self.database = database
        self.clock = clock

    @staticmethod
    def find(db: Session, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return db.get(User, user_id)

    @staticmethod
    def require(db: Session, user_id: int, label: str = "User") -> User:
        user = UserService.find(db, user_id)
        if user is None:
            raise NotFoundError(f"{label} with ID {user_id} not found")
        return user

    @staticmethod
    def _ambil_barang_between(db: Session, start, end, user_id: Optional[int] = None) -> List[AmbilBarang]:
        query = (
            select(AmbilBarang)
            .where(AmbilBarang.tanggal_ambil.between(start, end))
            .options(
                selectinload(AmbilBarang.detail_setors)
                .selectinload(DetailSetor.stok_harian_rel)
                .selectinload(StokHarian.barang_rel)
            )
            .order_by(AmbilBarang.tanggal_ambil.asc(), AmbilBarang.id.asc())
        )
        if user_id is not None:
            query = query.where(AmbilBarang.user_id == user_id)
        return db.execute(query).scalars().all()

    def list_users(self) -> List[UserOut]:
        with self.database.session() as db:
            users = db.execute(select(User).order_by(User.id.asc())).scalars().all()
            return [UserOut.model_validate(u) for u in users]

    def get_user(self, user_id: int) -> UserOut:
        with self.database.session() as db:
            return UserOut.model_validate(self.require(db, user_id))

    def get_users_with_today_status(self) -> List[UserTodayStatus]:
        """
        Every user (admins included) with what they took today.

        SUDAH_SETOR when every piece taken today is deposited, BELUM_SETOR while
        any is still pending, BELUM_AMBIL when nothing was taken today.
        `total_harus_setor` is the value of everything taken today, deposited or not.
        """
        start, end = day_bounds(self.clock.today())
        with self.database.session() as db:
            users = db.execute(select(User).order_by(User.id.asc())).scalars().all()
            by_user: Dict[int, List[AmbilBarang]] = {}
            for ambil_barang in self._ambil_barang_between(db, start, end):
                by_user.setdefault(ambil_barang.user_id, []).append(ambil_barang)

            result = []
            for user in users:
                ambil_barangs = by_user.get(user.id, [])
                total_ambil = 0
                total_setor = 0
                total_harus_setor = Decimal("0")
                barang: Dict[int, BarangDiambil] = {}

                for ambil_barang in ambil_barangs:
                    for detail in ambil_barang.detail_setors:
                        total_ambil += detail.qty
                        total_harus_setor += Decimal(detail.total_harga)
                        if detail.tanggal_setor is not None:
                            total_setor += detail.qty

                        barang_id = detail.stok_harian_rel.barang_id
                        entry = barang.get(barang_id)
                        if entry is None:
                            barang[barang_id] = BarangDiambil(
                                barang_id=barang_id,
                                nama=detail.barang_nama,
                                qty=detail.qty,
                                total_harga=Decimal(detail.total_harga),
                            )
                        else:
                            entry.qty += detail.qty
                            entry.total_harga += Decimal(detail.total_harga)

                if total_setor > 0 and total_setor >= total_ambil:
                    status = StatusHarianEnum.SUDAH_SETOR
                elif total_ambil > 0:
                    status = StatusHarianEnum.BELUM_SETOR
                else:
                    status = StatusHarianEnum.BELUM_AMBIL

                result.append(UserTodayStatus(
                    id=user.id,
                    nama_lengkap=user.nama_lengkap,
                    username=user.username,
                    nomor_telepon=user.nomor_telepon,
                    catatan=user.catatan,
                    status=status,
                    total_ambil=total_ambil,
                    total_setor=total_setor,
                    total_harus_setor=total_harus_setor,
                    ambil_barang_count=len(ambil_barangs),
                    barang_list=list(barang.values()),
                ))
            return result

    def get_user_monthly_stats(self, user_id: int, year: Optional[int] = None,
                               month: Optional[int] = None) -> UserMonthlyStats:
        today = self.clock.today()
        year = year or today.year
        month = month or today.month
        if month < 1 or month > 12:
            raise ValidationError(f"Invalid month: {month}")

        start, end = month_bounds(year, month)
        with self.database.session() as db:
            user = UserOut.model_validate(self.require(db, user_id))
            per_day: Dict[date, List[AmbilBarang]] = {}
            for ambil_barang in self._ambil_barang_between(db, start, end, user_id=user_id):
                per_day.setdefault(ambil_barang.tanggal_ambil.date(), []).append(ambil_barang)

            days = []
            first = date(year, month, 1)
            for offset in range(calendar.monthrange(year, month)[1]):
                day = first + timedelta(days=offset)
                # Saturday and Sunday
                status = StatusKalenderEnum.ABU if day.weekday() >= 5 else StatusKalenderEnum.MERAH

                ambil_barangs = per_day.get(day)
                detail = None
                if ambil_barangs:
                    lines = [d for a in ambil_barangs for d in a.detail_setors]
                    total_ambil = sum(d.qty for d in lines)
                    total_setor = sum(d.qty for d in lines if d.tanggal_setor is not None)
                    if total_ambil > 0:
                        if total_setor >= total_ambil:
                            status = StatusKalenderEnum.HIJAU
                        else:
                            status = StatusKalenderEnum.KUNING
                    detail = KalenderDetail(
                        count=len(ambil_barangs),
                        total_ambil=total_ambil,
                        total_setor=total_setor,
                    )

                days.append(KalenderHari(tanggal=day, status=status, detail=detail))

        logger.debug("Monthly stats for user %s in %04d-%02d: %d active days", user_id, year, month, len(per_day))
        return UserMonthlyStats(user=user, bulan=f"{year}-{month:02d}", calendar=days)
