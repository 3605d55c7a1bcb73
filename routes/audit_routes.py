from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.AuditTrail import AuditEntityEnum
from schemas.AuditSchemas import AuditTrailListResponse, AuditTrailResponse
from services.audit_services import AuditService

router = APIRouter()


@router.get("/{entity_type}/{entity_id}", response_model=AuditTrailListResponse)
def get_entity_audit_trail(
        request: Request,
        entity_type: AuditEntityEnum,
        entity_id: str,
        limit: int = Query(50, ge=1, le=1000),
        db: Session = Depends(get_db),
):
    items = AuditService(db, request.app.state.clock).history(entity_type, entity_id, limit=limit)
    return {
        "total": len(items),
        "items": [AuditTrailResponse.model_validate(item) for item in items],
    }
