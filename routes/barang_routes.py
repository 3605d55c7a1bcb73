from typing import List

from fastapi import APIRouter, Depends, Request
from starlette import status

from schemas.BarangSchemas import BarangCreate, BarangOut, BarangUpdate
from services.stok_services import StokService
from utils import get_current_user_name

router = APIRouter()


def get_stok_service(request: Request) -> StokService:
    return request.app.state.stok_service


@router.get("", response_model=List[BarangOut])
def list_barang(service: StokService = Depends(get_stok_service)):
    return service.list_barang()


@router.get("/with-deleted", response_model=List[BarangOut])
def list_barang_with_deleted(service: StokService = Depends(get_stok_service)):
    return service.list_barang_with_deleted()


@router.get("/{barang_id}", response_model=BarangOut)
def get_barang(barang_id: int, service: StokService = Depends(get_stok_service)):
    return service.get_barang(barang_id)


@router.post("", response_model=BarangOut, status_code=status.HTTP_201_CREATED)
def create_barang(
        payload: BarangCreate,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.create_barang(
        nama=payload.nama,
        keterangan=payload.keterangan,
        gambar=payload.gambar,
        user_name=user_name,
    )


@router.put("/{barang_id}", response_model=BarangOut)
def update_barang(
        barang_id: int,
        payload: BarangUpdate,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.update_barang(barang_id, user_name=user_name, **payload.model_dump(exclude_unset=True))


@router.delete("/{barang_id}", response_model=BarangOut)
def delete_barang(
        barang_id: int,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.delete_barang(barang_id, user_name=user_name)


@router.patch("/{barang_id}/restore", response_model=BarangOut)
def restore_barang(
        barang_id: int,
        service: StokService = Depends(get_stok_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.restore_barang(barang_id, user_name=user_name)
