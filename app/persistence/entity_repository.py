"""Generic entity repository using SQLAlchemy 2.0 async.

Tables: aurum.users, aurum.accounts, aurum.transactions,
aurum.wire_transfers, aurum.cards

Bulk operations address entities by (entity type, id) and apply column
patches; only the columns listed per table may be patched.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import DB_SCHEMA
from app.core.errors import NotFoundError, ValidationError
from app.domain.models.banking import EntityType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityTable:
    label: str
    select_sql: str
    update_table: str
    patchable: frozenset[str]


ENTITY_TABLES: dict[EntityType, EntityTable] = {
    EntityType.USER: EntityTable(
        label="User",
        select_sql=f"""
            SELECT id, email, status, kyc_status, suspension_reason, created_at, updated_at
            FROM {DB_SCHEMA}.users
            WHERE id = :entity_id
        """,
        update_table=f"{DB_SCHEMA}.users",
        patchable=frozenset({"status", "kyc_status", "suspension_reason"}),
    ),
    EntityType.ACCOUNT: EntityTable(
        label="Account",
        select_sql=f"""
            SELECT id, user_id, account_number, status, balance, currency,
                   created_at, updated_at
            FROM {DB_SCHEMA}.accounts
            WHERE id = :entity_id
        """,
        update_table=f"{DB_SCHEMA}.accounts",
        patchable=frozenset({"status"}),
    ),
    EntityType.TRANSACTION: EntityTable(
        label="Transaction",
        select_sql=f"""
            SELECT id, account_id, type, amount, currency, status, reference,
                   created_at, updated_at
            FROM {DB_SCHEMA}.transactions
            WHERE id = :entity_id
        """,
        update_table=f"{DB_SCHEMA}.transactions",
        patchable=frozenset(),
    ),
    EntityType.WIRE_TRANSFER: EntityTable(
        label="Wire transfer",
        select_sql=f"""
            SELECT w.id, w.sender_account_id, w.amount, w.currency,
                   w.compliance_status, w.approved_by, w.approved_at,
                   w.rejection_reason, w.created_at, w.updated_at,
                   a.user_id AS owner_user_id
            FROM {DB_SCHEMA}.wire_transfers w
            JOIN {DB_SCHEMA}.accounts a ON a.id = w.sender_account_id
            WHERE w.id = :entity_id
        """,
        update_table=f"{DB_SCHEMA}.wire_transfers",
        patchable=frozenset(
            {"compliance_status", "approved_by", "approved_at", "rejection_reason"}
        ),
    ),
    EntityType.CARD: EntityTable(
        label="Card",
        select_sql=f"""
            SELECT id, account_id, last4, status, created_at, updated_at
            FROM {DB_SCHEMA}.cards
            WHERE id = :entity_id
        """,
        update_table=f"{DB_SCHEMA}.cards",
        patchable=frozenset({"status"}),
    ),
}


class EntityRepository:
    """Repository for reading and patching bulk-addressable entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _table(entity_type: EntityType) -> EntityTable:
        return ENTITY_TABLES[EntityType(entity_type)]

    async def get_by_id(self, entity_type: EntityType, entity_id: str) -> dict[str, Any] | None:
        """Get an entity row by ID, or None if it does not exist."""
        table = self._table(entity_type)
        result = await self.session.execute(text(table.select_sql), {"entity_id": entity_id})
        row = result.mappings().fetchone()
        if row is None:
            return None
        return dict(row)

    async def update(
        self,
        entity_type: EntityType,
        entity_id: str,
        patch: dict[str, Any],
    ) -> None:
        """Apply a column patch to one entity.

        Raises:
            ValidationError: patch is empty or names a column that may not be patched
            NotFoundError: no row with this id
        """
        table = self._table(entity_type)
        if not patch:
            raise ValidationError("Nothing to update", details={"entity_id": entity_id})

        illegal = sorted(set(patch) - table.patchable)
        if illegal:
            raise ValidationError(
                f"{table.label} fields cannot be updated: {', '.join(illegal)}",
                details={"fields": illegal},
            )

        columns = sorted(patch)
        assignments = ", ".join(f"{column} = :{column}" for column in columns)
        params = {column: patch[column] for column in columns}
        params["entity_id"] = entity_id

        result = await self.session.execute(
            text(f"""
                UPDATE {table.update_table}
                SET {assignments}, updated_at = NOW()
                WHERE id = :entity_id
            """),
            params,
        )
        if result.rowcount == 0:
            raise NotFoundError(f"{table.label} not found", details={"id": entity_id})
        logger.debug("Updated %s %s: %s", table.label, entity_id, columns)
