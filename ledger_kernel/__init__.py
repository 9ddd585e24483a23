"""
Ledger Kernel - multi-tenant posting engine for microfinance products.

A double-entry ledger where every movement on a savings, fixed deposit,
loan or recurring deposit account is:
- Mirrored as one balanced posting against the tenant's chart of accounts
- Committed atomically with the product balance it changes
- Idempotent per (tenant, idempotency key)
- Isolated per tenant
"""

__version__ = "0.1.0"
