# ==== AUDIT LOG WRITER ==== #

"""
Audit trail for admin-initiated order mutations.

Entries are added to the caller's session and commit or roll back with the
mutation they describe. Callers never branch on the outcome.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.observability.logging import get_logger
from app.storage.models import AuditLog


logger = get_logger(__name__)


class AuditLogWriter:
    """Appends audit rows alongside the mutation being audited."""

    def log(
        self,
        db: AsyncSession,
        user_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Any,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None
    ) -> None:
        db.add(AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            old_values=old_values,
            new_values=new_values,
        ))
        logger.debug(
            "Audit entry recorded",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id
        )
