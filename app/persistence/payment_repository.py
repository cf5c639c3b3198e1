"""Bill payment repository using SQLAlchemy 2.0 async.

Tables: aurum.accounts, aurum.bill_payees, aurum.transactions,
aurum.payment_verifications

Payment amounts are positive here; the transaction row stores the
outflow as a negative amount.
"""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import DB_SCHEMA
from app.core.errors import InsufficientFundsError
from app.domain.models.banking import PaymentTransactionStatus
from app.domain.models.payment_session import SupportingDocument

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Repository for customer accounts, saved payees and bill payment records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_account(self, account_id: str, user_id: str) -> dict[str, Any] | None:
        """Get an account owned by ``user_id``."""
        result = await self.session.execute(
            text(f"""
                SELECT id, user_id, account_number, status, balance, currency
                FROM {DB_SCHEMA}.accounts
                WHERE id = :account_id AND user_id = :user_id
            """),
            {"account_id": account_id, "user_id": user_id},
        )
        row = result.mappings().fetchone()
        if row is None:
            return None
        account = dict(row)
        account["balance"] = Decimal(str(account["balance"]))
        return account

    async def get_payee(self, payee_id: str, user_id: str) -> dict[str, Any] | None:
        """Get a saved payee owned by ``user_id``."""
        result = await self.session.execute(
            text(f"""
                SELECT id, user_id, name, account_number, category
                FROM {DB_SCHEMA}.bill_payees
                WHERE id = :payee_id AND user_id = :user_id
            """),
            {"payee_id": payee_id, "user_id": user_id},
        )
        row = result.mappings().fetchone()
        return dict(row) if row is not None else None

    async def _insert_transaction(
        self,
        account_id: str,
        amount: Decimal,
        currency: str,
        status: PaymentTransactionStatus,
        category: str | None,
        description: str,
        reference: str,
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        transaction_id = str(uuid4())
        processed = status == PaymentTransactionStatus.COMPLETED
        await self.session.execute(
            text(f"""
                INSERT INTO {DB_SCHEMA}.transactions (
                    id, account_id, type, amount, currency, status, category,
                    description, reference, metadata, processed_at, created_at, updated_at
                ) VALUES (
                    :id, :account_id, 'PAYMENT', :amount, :currency, :status, :category,
                    :description, :reference, CAST(:metadata AS JSONB),
                    :processed_at, NOW(), NOW()
                )
            """),
            {
                "id": transaction_id,
                "account_id": account_id,
                "amount": -amount,
                "currency": currency,
                "status": status.value,
                "category": category,
                "description": description,
                "reference": reference,
                "metadata": json.dumps(metadata or {}),
                "processed_at": datetime.now(UTC) if processed else None,
            },
        )
        return {
            "transaction_id": transaction_id,
            "reference": reference,
            "amount": amount,
            "currency": currency,
            "status": status.value,
        }

    async def create_payment(
        self,
        account_id: str,
        amount: Decimal,
        currency: str,
        category: str | None,
        description: str,
        reference: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Debit the account and record a completed payment.

        Raises:
            InsufficientFundsError: balance no longer covers the amount
        """
        result = await self.session.execute(
            text(f"""
                UPDATE {DB_SCHEMA}.accounts
                SET balance = balance - :amount, updated_at = NOW()
                WHERE id = :account_id AND balance >= :amount
            """),
            {"account_id": account_id, "amount": amount},
        )
        if result.rowcount == 0:
            raise InsufficientFundsError(
                "Insufficient funds", details={"account_id": account_id}
            )

        return await self._insert_transaction(
            account_id=account_id,
            amount=amount,
            currency=currency,
            status=PaymentTransactionStatus.COMPLETED,
            category=category,
            description=description,
            reference=reference,
            metadata=metadata,
        )

    async def create_pending_verification(
        self,
        account_id: str,
        amount: Decimal,
        currency: str,
        category: str | None,
        description: str,
        reference: str,
        document: SupportingDocument,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Record a payment awaiting document review. The account is not debited."""
        payment = await self._insert_transaction(
            account_id=account_id,
            amount=amount,
            currency=currency,
            status=PaymentTransactionStatus.PENDING_VERIFICATION,
            category=category,
            description=description,
            reference=reference,
            metadata=metadata,
        )

        verification_id = str(uuid4())
        await self.session.execute(
            text(f"""
                INSERT INTO {DB_SCHEMA}.payment_verifications (
                    id, transaction_id, document_name, document_type,
                    document_content, status, created_at
                ) VALUES (
                    :id, :transaction_id, :document_name, :document_type,
                    :document_content, 'PENDING', NOW()
                )
            """),
            {
                "id": verification_id,
                "transaction_id": payment["transaction_id"],
                "document_name": document.filename,
                "document_type": document.content_type,
                "document_content": document.content,
            },
        )
        logger.info(
            "Payment verification recorded",
            extra={"verification_id": verification_id, "reference": reference},
        )
        payment["verification_id"] = verification_id
        return payment
