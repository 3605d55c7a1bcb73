from fastapi import APIRouter, Depends, Request

from schemas.AmbilBarangSchemas import DetailSetorDetail, DetailSetorOut, DetailSetorQtyUpdate
from services.detailsetor_services import DetailSetorService
from utils import get_current_user_name

router = APIRouter()


def get_detail_setor_service(request: Request) -> DetailSetorService:
    return request.app.state.detail_setor_service


@router.get("/{detail_setor_id}", response_model=DetailSetorDetail)
def get_detail_setor(detail_setor_id: int, service: DetailSetorService = Depends(get_detail_setor_service)):
    return service.get_detail_setor(detail_setor_id)


@router.put("/{detail_setor_id}", response_model=DetailSetorOut)
def update_detail_setor_qty(
        detail_setor_id: int,
        payload: DetailSetorQtyUpdate,
        service: DetailSetorService = Depends(get_detail_setor_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.update_detail_setor_qty(detail_setor_id, payload.qty, user_name=user_name)


@router.delete("/{detail_setor_id}")
def delete_detail_setor(
        detail_setor_id: int,
        service: DetailSetorService = Depends(get_detail_setor_service),
        user_name: str = Depends(get_current_user_name),
):
    return service.delete_detail_setor(detail_setor_id, user_name=user_name)
