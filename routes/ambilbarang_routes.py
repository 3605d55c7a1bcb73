from typing import List

from fastapi import APIRouter, Depends, Request
from starlette import status

from schemas.AmbilBarangSchemas import AmbilBarangCreate, AmbilBarangOut, KeteranganUpdate
from services.ambilbarang_services import AmbilBarangService
from utils import get_current_user_name

router = APIRouter()


def get_ambil_barang_service(request: Request) -> AmbilBarangService:
    return request.app.state.ambil_barang_service


@router.post("", response_model=AmbilBarangOut, status_code=status.HTTP_201_CREATED)
def create_ambil_barang(
        payload: AmbilBarangCreate,
        service: AmbilBarangService = Depends(get_ambil_barang_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.create_ambil_barang(
        user_id=payload.user_id,
        setor_kepada_id=payload.setor_kepada_id,
        items=[(item.stok_harian_id, item.qty) for item in payload.items],
        keterangan=payload.keterangan,
        user_name=user_name,
    )


@router.get("/belum-setor", response_model=List[AmbilBarangOut])
def get_belum_setor(service: AmbilBarangService = Depends(get_ambil_barang_service)):
    return service.get_belum_setor()


@router.get("/user/{user_id}", response_model=List[AmbilBarangOut])
def get_by_user(user_id: int, service: AmbilBarangService = Depends(get_ambil_barang_service)):
    return service.get_by_user(user_id)


@router.get("/{ambil_barang_id}", response_model=AmbilBarangOut)
def get_ambil_barang(ambil_barang_id: int, service: AmbilBarangService = Depends(get_ambil_barang_service)):
    return service.get_ambil_barang(ambil_barang_id)


@router.patch("/{ambil_barang_id}/keterangan", response_model=AmbilBarangOut)
def update_keterangan(
        ambil_barang_id: int,
        payload: KeteranganUpdate,
        service: AmbilBarangService = Depends(get_ambil_barang_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.update_keterangan(ambil_barang_id, payload.keterangan, user_name=user_name)
