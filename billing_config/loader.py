"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses its sections into the typed
module config dataclasses (``PaymentConfig``, ``FundConfig``,
``ReportingConfig``).  Runtime callers use
``billing_config.get_active_config()`` instead of calling this directly.

Architecture position
---------------------
**Config layer** -- sits above ``billing_kernel`` and beside
``billing_modules``.  The kernel MUST NEVER import from ``billing_config``.

Invariants enforced
-------------------
* Unknown top-level sections are rejected; a typo must not silently fall
  back to defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or field  -> ``ValueError`` / ``TypeError``.
* Invalid values  -> ``ValueError`` from the dataclass ``__post_init__``.
"""

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from billing_modules.funds.config import FundConfig
from billing_modules.payments.config import PaymentConfig
from billing_modules.reporting.config import ReportingConfig

SECTIONS = ("payments", "funds", "reporting")


@dataclass(frozen=True)
class BillingConfig:
    """Every module configuration of one deployment, with its checksum."""

    payments: PaymentConfig = field(default_factory=PaymentConfig)
    funds: FundConfig = field(default_factory=FundConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    checksum: str = ""
    source: str | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def parse_config(data: dict[str, Any], source: str | None = None) -> BillingConfig:
    """Build a BillingConfig from an already-parsed mapping."""
    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {unknown}")

    return BillingConfig(
        payments=PaymentConfig.from_dict(data.get("payments") or {}),
        funds=FundConfig.from_dict(data.get("funds") or {}),
        reporting=ReportingConfig.from_dict(data.get("reporting") or {}),
        checksum=compute_checksum(data),
        source=source,
    )


def load_config(path: Path | str) -> BillingConfig:
    path = Path(path)
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
