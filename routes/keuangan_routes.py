from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette import status

from schemas.KeuanganSchemas import (
    DetailKeuanganDetail, DetailKeuanganOut, LaporanBulanan, LaporanHarian,
    SaldoOut, TransaksiCreate, TransaksiResult
)
from schemas.PaginatedResponseSchemas import PaginatedResponse
from services.keuangan_services import KeuanganService
from utils import get_current_user_name

router = APIRouter()


def get_keuangan_service(request: Request) -> KeuanganService:
    return request.app.state.keuangan_service


@router.get("/saldo", response_model=SaldoOut)
def get_saldo(service: KeuanganService = Depends(get_keuangan_service)):
    return service.get_saldo()


@router.get("/histori", response_model=PaginatedResponse[DetailKeuanganOut])
def get_histori(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=1000),
        service: KeuanganService = Depends(get_keuangan_service),
):
    return service.get_histori(page=page, limit=limit)


@router.get("/histori/{year}/{month}", response_model=List[DetailKeuanganDetail])
def get_histori_by_month(year: int, month: int, service: KeuanganService = Depends(get_keuangan_service)):
    return service.get_histori_by_month(year, month)


@router.get("/laporan/harian", response_model=LaporanHarian)
def get_laporan_harian(
        tanggal: Optional[date] = Query(None, description="Default: today"),
        service: KeuanganService = Depends(get_keuangan_service),
):
    return service.get_laporan_harian(tanggal)


@router.get("/laporan/bulanan", response_model=LaporanBulanan)
def get_laporan_bulanan(
        bulan: Optional[str] = Query(None, description="YYYY-MM, default: this month"),
        service: KeuanganService = Depends(get_keuangan_service),
):
    return service.get_laporan_bulanan(bulan)


@router.get("/{entry_id}", response_model=DetailKeuanganDetail)
def get_detail_keuangan(entry_id: int, service: KeuanganService = Depends(get_keuangan_service)):
    return service.get_detail_keuangan(entry_id)


@router.post("/pemasukan", response_model=TransaksiResult, status_code=status.HTTP_201_CREATED)
def create_pemasukan(
        payload: TransaksiCreate,
        service: KeuanganService = Depends(get_keuangan_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.create_pemasukan(payload.title, payload.nominal, payload.keterangan, user_name=user_name)


@router.post("/pengeluaran", response_model=TransaksiResult, status_code=status.HTTP_201_CREATED)
def create_pengeluaran(
        payload: TransaksiCreate,
        service: KeuanganService = Depends(get_keuangan_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.create_pengeluaran(payload.title, payload.nominal, payload.keterangan, user_name=user_name)


@router.delete("/{entry_id}", response_model=SaldoOut)
def delete_detail_keuangan(
        entry_id: int,
        service: KeuanganService = Depends(get_keuangan_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.delete_detail_keuangan(entry_id, user_name=user_name)
