"""
LedgerConfig schema.

Frozen dataclasses for the YAML configuration: database settings, posting
settings and the chart-of-accounts templates used to seed new tenants.
Enumerated fields stay plain strings here; the loader checks them against
the kernel enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


# ---------------------------------------------------------------------------
# Posting engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingConfig:
    """Commit-unit settings for the posting engine."""

    lock_timeout_seconds: float = 10.0


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountTemplate:
    """One GL account of a chart template."""

    code: str
    name: str
    classification: str
    product_type: str | None = None
    ledger_role: str | None = None


@dataclass(frozen=True)
class ChartTemplate:
    """A named chart of accounts registered for each new tenant."""

    name: str
    accounts: tuple[AccountTemplate, ...] = ()

    def by_code(self, code: str) -> AccountTemplate:
        for account in self.accounts:
            if account.code == code:
                return account
        raise KeyError(code)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    database: DatabaseConfig
    posting: PostingConfig
    charts: tuple[ChartTemplate, ...] = ()
    default_chart: str = "microfinance"
    checksum: str = field(default="", compare=False)

    def chart(self, name: str | None = None) -> ChartTemplate:
        """The chart template called ``name`` (default chart when omitted)."""
        wanted = name or self.default_chart
        for chart in self.charts:
            if chart.name == wanted:
                return chart
        raise KeyError(f"Unknown chart template: {wanted}")
