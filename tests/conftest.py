"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time; unit tests never reach Auth0 or Postgres
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH0_DOMAIN", "test.local")
os.environ.setdefault("AUTH0_AUDIENCE", "https://aurum-vault-operations-api")
os.environ.setdefault("AUTH0_ALGORITHMS", "RS256")

ROLES_CLAIM = "https://aurum-vault-operations-api/roles"


def token_claims(name: str, roles: list[str], permissions: list[str]) -> dict:
    """Decoded access-token claims for a test principal."""
    return {
        "sub": f"auth0|test-{name}",
        "email": f"test-{name}@aurumvault.test",
        ROLES_CLAIM: roles,
        "permissions": permissions,
        "exp": 9999999999,
    }


MOCK_PLATFORM_ADMIN_TOKEN = token_claims(
    "platform-admin", ["PLATFORM_ADMIN"], ["bulk:execute", "bills:pay"]
)
MOCK_OPERATIONS_ADMIN_TOKEN = token_claims(
    "operations-admin", ["OPERATIONS_ADMIN"], ["bulk:execute"]
)
MOCK_CUSTOMER_TOKEN = token_claims("customer", ["CUSTOMER"], ["bills:pay"])
MOCK_NO_ROLE_TOKEN = token_claims("no-role", [], [])


@pytest.fixture
def mock_session():
    """Mock async database session with working savepoints."""
    session = AsyncMock()
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session


@pytest.fixture
def sample_account() -> dict:
    return {
        "id": "acc-1",
        "user_id": "auth0|test-customer",
        "account_number": "AV-000123",
        "status": "ACTIVE",
        "balance": Decimal("50000.00"),
        "currency": "USD",
    }


@pytest.fixture
def sample_payee() -> dict:
    return {
        "id": "payee-1",
        "user_id": "auth0|test-customer",
        "name": "City Utilities",
        "account_number": "UTIL-998877",
        "category": "UTILITIES",
    }
