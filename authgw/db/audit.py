"""Login/logout audit trail. Failures are logged and never reach the caller."""

import logging
from datetime import UTC, datetime

import uuid_utils
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgw.db.models_audit import AuditLogEntity

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Appends login records and stamps logouts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def record_login(
        self,
        *,
        user_id: str,
        email: str,
        provider: str,
        company_id: str | None,
    ) -> str | None:
        """Insert one login record; returns its id, or None if it was not stored."""
        entity = AuditLogEntity(
            id=str(uuid_utils.uuid7()),
            user_id=user_id,
            email=email,
            provider=provider,
            company_id=company_id,
            login_at=datetime.now(UTC),
        )
        try:
            async with self._factory() as session:
                session.add(entity)
                await session.commit()
        except (SQLAlchemyError, OSError):
            logger.exception("Failed to write login audit record", extra={"user_id": user_id})
            return None
        logger.info(
            "Login audit record created",
            extra={"user_id": user_id, "provider": provider},
        )
        return entity.id

    async def record_logout(self, user_id: str | None) -> bool:
        """Stamp ``logout_at`` on the user's most recent login; never inserts."""
        if not user_id:
            logger.warning("No user_id provided for logout audit")
            return False
        stmt = (
            select(AuditLogEntity)
            .where(AuditLogEntity.user_id == user_id)
            .order_by(AuditLogEntity.login_at.desc())
            .limit(1)
        )
        try:
            async with self._factory() as session:
                record = (await session.execute(stmt)).scalar_one_or_none()
                if record is None:
                    logger.warning("No login record found for user", extra={"user_id": user_id})
                    return False
                record.logout_at = datetime.now(UTC)
                await session.commit()
        except (SQLAlchemyError, OSError):
            logger.exception("Failed to stamp logout audit record", extra={"user_id": user_id})
            return False
        logger.info("Logout timestamp recorded", extra={"user_id": user_id})
        return True
