from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from schemas.SetorSchemas import SetorResult, parse_setor_payload
from services.setor_services import SetorService
from utils import get_current_user_name

router = APIRouter()


def get_setor_service(request: Request) -> SetorService:
    return request.app.state.setor_service


@router.post("", response_model=SetorResult)
def proses_setor(
        payload: Any = Body(...),
        admin_id: Optional[int] = Query(None, alias="adminId"),
        service: SetorService = Depends(get_setor_service),
        user_name: str = Depends(get_current_user_name),
):
    # Both the {items: [...]} body and the legacy id-list bodies land here
    command = parse_setor_payload(payload, admin_id)
    return service.proses_setor(command, user_name=user_name)
