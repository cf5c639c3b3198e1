"""Aurum Vault Operations Service.

Back-office and customer operations for the Aurum Vault banking app:
- Bulk status, KYC and review actions on users, accounts, wire transfers and cards
- Transaction exports (transactions themselves are never modified in bulk)
- Invoice upload and bill payment, with document verification above a threshold
"""

__version__ = "0.1.0"
