from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Column


class SoftDeleteMixin:
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    def soft_delete(self, deleted_at: Optional[datetime] = None):
        """Hide the row from active listings; history that references it stays intact."""
        self.is_deleted = True
        self.deleted_at = deleted_at or datetime.now()

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None

    @classmethod
    def active(cls):
        return cls.is_deleted.is_(False)
