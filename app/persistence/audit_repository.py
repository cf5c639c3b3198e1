"""Audit log repository.

Table: aurum.audit_logs

Every row records who did what to which entity, from where. Status changes
carry the from/to values and reason in ``details``.
"""

import json
import logging
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import DB_SCHEMA

logger = logging.getLogger(__name__)

USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
KYC_STATUS_CHANGE = "KYC_STATUS_CHANGE"
WIRE_TRANSFER_REVIEW = "WIRE_TRANSFER_REVIEW"


class AuditRepository:
    """Repository for aurum.audit_logs writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _insert(
        self,
        admin_user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        details: dict[str, Any],
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        await self.session.execute(
            text(f"""
                INSERT INTO {DB_SCHEMA}.audit_logs (
                    id, admin_user_id, action, entity_type, entity_id,
                    details, ip_address, user_agent, created_at
                ) VALUES (
                    :id, :admin_user_id, :action, :entity_type, :entity_id,
                    CAST(:details AS JSONB), :ip_address, :user_agent, NOW()
                )
            """),
            {
                "id": str(uuid4()),
                "admin_user_id": admin_user_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": json.dumps(details),
                "ip_address": ip_address,
                "user_agent": user_agent,
            },
        )

    async def log_status_change(
        self,
        actor_id: str,
        subject_id: str,
        from_value: str,
        to_value: str,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """Record a user account status change."""
        await self._insert(
            actor_id,
            USER_STATUS_CHANGE,
            "USER",
            subject_id,
            {"from": from_value, "to": to_value, "reason": reason},
            ip_address,
            user_agent,
        )

    async def log_kyc_status_change(
        self,
        actor_id: str,
        subject_id: str,
        from_value: str,
        to_value: str,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """Record a user KYC status change."""
        await self._insert(
            actor_id,
            KYC_STATUS_CHANGE,
            "USER",
            subject_id,
            {"from": from_value, "to": to_value, "reason": reason},
            ip_address,
            user_agent,
        )

    async def log_wire_transfer_review(
        self,
        actor_id: str,
        transfer_id: str,
        owner_user_id: str,
        decision: str,
        reason: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """Record an approve/reject decision on a wire transfer."""
        await self._insert(
            actor_id,
            WIRE_TRANSFER_REVIEW,
            "WIRE_TRANSFER",
            transfer_id,
            {"owner_user_id": owner_user_id, "decision": decision, "reason": reason},
            ip_address,
            user_agent,
        )
