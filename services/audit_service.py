# app/services/audit_service.py
from typing import Optional, Dict, Any

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from models.audit_log import AuditLog


class AuditService:
    def __init__(self, db: AsyncSession, request: Optional[Request] = None):
        self.db = db
        self.request = request

    def record(
            self,
            action: str,
            entity_type: str,
            entity_id: Optional[int],
            user_id: Optional[int],
            old_values: Optional[Dict[str, Any]] = None,
            new_values: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """Stage an audit row in the caller's transaction (no commit)."""

        log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
        )

        if self.request is not None:
            log.ip_address = self.request.client.host if self.request.client else None
            log.user_agent = self.request.headers.get("user-agent", "")
            log.endpoint = str(self.request.url.path)
            log.method = self.request.method

        self.db.add(log)
        return log

