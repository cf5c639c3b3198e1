"""System configuration repository.

Table: aurum.system_config (key TEXT PRIMARY KEY, value TEXT)
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import DB_SCHEMA


class SystemConfigRepository:
    """Repository for runtime-editable configuration values."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_value(self, key: str) -> str | None:
        result = await self.session.execute(
            text(f"SELECT value FROM {DB_SCHEMA}.system_config WHERE key = :key"),
            {"key": key},
        )
        return result.scalar_one_or_none()
