from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict

from models.AuditTrail import AuditEntityEnum


class AuditTrailResponse(BaseModel):
    id: int
    user_name: str
    entity_type: AuditEntityEnum
    entity_id: str
    description: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditTrailListResponse(BaseModel):
    total: int
    items: List[AuditTrailResponse]
