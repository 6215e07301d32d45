"""
Fund Desk Configuration Schema.

Category names and voucher numbering for fund movements.  Values are
loaded from ``billing_config`` (YAML) at runtime.
"""

from dataclasses import dataclass
from typing import Self

from billing_kernel.logging_config import get_logger

logger = get_logger("modules.funds.config")


@dataclass
class FundConfig:
    """
    Configuration schema for the fund desk.

    fund_in movements book income under ``fund_in_category``; fund_out
    movements book expense under ``fund_out_category``.
    """

    fund_in_category: str = "Fund In"
    fund_out_category: str = "Fund Out"

    fund_in_prefix: str = "FI"
    fund_out_prefix: str = "FO"
    number_width: int = 6

    def __post_init__(self):
        for name in ("fund_in_category", "fund_out_category", "fund_in_prefix", "fund_out_prefix"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} cannot be empty")
        if self.fund_in_prefix == self.fund_out_prefix:
            raise ValueError("fund_in_prefix and fund_out_prefix must differ")
        if self.number_width < 1:
            raise ValueError("number_width must be at least 1")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "fund_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
