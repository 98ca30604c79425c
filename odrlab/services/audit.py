"""Audit trail for privileged and destructive actions."""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import Database
from odrlab.models.audit_log import AuditLog
from odrlab.models.user import User

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def log_audit_event(
    database: Database,
    action: str,
    actor: Optional[User],
    success: bool,
    target_id=None,
    target_type: Optional[str] = None,
    message: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    Append one audit row through a session of its own, so entries written on
    a failure path survive the rollback of the request transaction.
    A failed write is logged and never fails the request.
    """
    entry = AuditLog(
        action=action,
        user_id=actor.id if actor is not None else None,
        user_role=actor.user_role.value if actor is not None else None,
        target_id=str(target_id) if target_id is not None else None,
        target_type=target_type,
        success=success,
        message=message,
        ip_address=ip_address,
    )
    try:
        async with database.session() as session:
            session.add(entry)
            await session.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to write audit event {action}")
        return

    log = logger.info if success else logger.warning
    log(f"AUDIT {action} by {entry.user_id} on {target_type}:{entry.target_id} success={success}")


async def log_failure(
    db: AsyncSession,
    database: Database,
    request: Request,
    actor: User,
    action: str,
    target_id=None,
    target_type: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    """Roll back the request transaction, then audit the failed action."""
    # Rollback expires every loaded instance; keep the actor readable
    if actor in db:
        db.expunge(actor)
    await db.rollback()
    await log_audit_event(
        database, action, actor, False,
        target_id=target_id, target_type=target_type,
        message=message, ip_address=client_ip(request),
    )
