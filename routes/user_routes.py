from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from schemas.UserSchemas import UserMonthlyStats, UserOut, UserTodayStatus
from services.user_services import UserService

router = APIRouter()


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


@router.get("", response_model=List[UserOut])
def list_users(service: UserService = Depends(get_user_service)):
    return service.list_users()


@router.get("/today-status", response_model=List[UserTodayStatus])
def get_users_with_today_status(service: UserService = Depends(get_user_service)):
    return service.get_users_with_today_status()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)


@router.get("/{user_id}/stats", response_model=UserMonthlyStats)
def get_user_monthly_stats(
        user_id: int,
        year: Optional[int] = Query(None, ge=2000),
        month: Optional[int] = Query(None, ge=1, le=12),
        service: UserService = Depends(get_user_service),
):
    return service.get_user_monthly_stats(user_id, year, month)
