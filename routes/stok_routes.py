from typing import List

from fastapi import APIRouter, Depends, Query
from starlette import status

from routes.barang_routes import get_stok_service
from schemas.PaginatedResponseSchemas import PaginatedResponse
from schemas.StokSchemas import StokHarianCreate, StokHarianOut, StokHarianSummary, StokHarianUpdate
from services.stok_services import StokService
from utils import get_current_user_name

router = APIRouter()


@router.get("/hari-ini", response_model=List[StokHarianSummary])
def get_stok_hari_ini(service: StokService = Depends(get_stok_service)):
    return service.get_stok_hari_ini()


@router.get("/histori", response_model=PaginatedResponse[StokHarianSummary])
def get_histori_stok(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=1000),
        service: StokService = Depends(get_stok_service),
):
    return service.get_histori_stok(page=page, limit=limit)


@router.get("/{stok_id}", response_model=StokHarianSummary)
def get_stok(stok_id: int, service: StokService = Depends(get_stok_service)):
    return service.get_stok(stok_id)


# Create
@router.post("", response_model=StokHarianOut, status_code=status.HTTP_201_CREATED)
def create_stok_harian(
        payload: StokHarianCreate,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.create_stok_harian(
        barang_id=payload.barang_id,
        harga=payload.harga,
        stok=payload.stok,
        modal=payload.modal,
        tanggal_edar=payload.tanggal_edar,
        keterangan=payload.keterangan,
        user_name=user_name,
    )


# Update
@router.put("/{stok_id}", response_model=StokHarianOut)
def update_stok_harian(
        stok_id: int,
        payload: StokHarianUpdate,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.update_stok_harian(
        stok_id,
        harga=payload.harga,
        stok=payload.stok,
        modal=payload.modal,
        keterangan=payload.keterangan,
        tanggal_edar=payload.tanggal_edar,
        user_name=user_name,
    )


# Delete
@router.delete("/{stok_id}")
def delete_stok_harian(
        stok_id: int,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.delete_stok_harian(stok_id, user_name=user_name)
