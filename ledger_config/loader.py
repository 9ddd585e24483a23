"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the frozen
dataclasses of ``ledger_config.schema``.  Runtime callers go through
``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Classification, product type and ledger role values are checked against
  the kernel enums at load time, not at tenant seeding time.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the source
  document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown enum values, duplicate codes  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountTemplate,
    ChartTemplate,
    DatabaseConfig,
    LedgerConfig,
    PostingConfig,
)
from ledger_kernel.models.gl_account import AccountClassification, LedgerRole, ProductType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _enum_value(enum_type, value: Any, what: str) -> str:
    try:
        return enum_type(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Unknown {what} {value!r}; expected one of: {allowed}") from None


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
    )


def parse_posting(data: dict[str, Any]) -> PostingConfig:
    timeout = float(data.get("lock_timeout_seconds", 10.0))
    if timeout <= 0:
        raise ValueError(f"posting.lock_timeout_seconds must be positive, got {timeout}")
    return PostingConfig(lock_timeout_seconds=timeout)


def parse_account_template(data: dict[str, Any]) -> AccountTemplate:
    """
    Parse one chart entry.

    Raises:
        KeyError: if ``code``, ``name`` or ``classification`` is missing.
        ValueError: for an unknown classification, product type or role.
    """
    product_type = data.get("product_type")
    ledger_role = data.get("ledger_role")
    return AccountTemplate(
        code=str(data["code"]),
        name=data["name"],
        classification=_enum_value(AccountClassification, data["classification"], "classification"),
        product_type=_enum_value(ProductType, product_type, "product type") if product_type else None,
        ledger_role=_enum_value(LedgerRole, ledger_role, "ledger role") if ledger_role else None,
    )


def parse_chart(data: dict[str, Any]) -> ChartTemplate:
    accounts = tuple(parse_account_template(a) for a in data.get("accounts", []))
    codes = [a.code for a in accounts]
    duplicates = sorted({code for code in codes if codes.count(code) > 1})
    if duplicates:
        raise ValueError(f"Chart {data['name']!r} repeats account codes: {duplicates}")
    return ChartTemplate(name=data["name"], accounts=accounts)


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a whole configuration document.

    Preconditions:
        - ``data`` has a ``database`` section with a ``url``.
    Postconditions:
        - Returns a LedgerConfig whose ``checksum`` identifies ``data``.
    """
    charts = tuple(parse_chart(c) for c in data.get("charts", []))
    default_chart = data.get("default_chart", charts[0].name if charts else "microfinance")
    if charts and default_chart not in {c.name for c in charts}:
        raise ValueError(f"default_chart {default_chart!r} is not defined under charts")
    return LedgerConfig(
        database=parse_database(data["database"]),
        posting=parse_posting(data.get("posting", {})),
        charts=charts,
        default_chart=default_chart,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
