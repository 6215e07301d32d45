"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the runtime configuration through ``get_active_config()``.
    The packaged ``defaults.yaml`` is used unless the
    ``BILLING_CONFIG_PATH`` environment variable names another file.

Architecture position:
    Configuration.  Sits above ``billing_kernel``; the kernel MUST NEVER
    import from ``billing_config``.

Failure modes:
    - ``FileNotFoundError`` -- BILLING_CONFIG_PATH points at a missing file.
    - ``ValueError`` -- unknown sections or invalid values.

Audit relevance:
    Every ``get_active_config()`` call emits a ``billing_config_loaded``
    log entry carrying the source path and checksum.
"""

import os
from pathlib import Path

from billing_config.loader import (
    BillingConfig,
    compute_checksum,
    load_config,
    load_yaml_file,
    parse_config,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_PATH_ENV = "BILLING_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """
    The public configuration entrypoint.

    Resolution order: explicit ``path``, then ``$BILLING_CONFIG_PATH``,
    then the packaged defaults.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = load_config(resolved)
    logger.info(
        "billing_config_loaded",
        extra={"source": str(resolved), "checksum": config.checksum},
    )
    return config


__all__ = [
    "BillingConfig",
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "compute_checksum",
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
