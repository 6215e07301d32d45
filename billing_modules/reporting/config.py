"""
Reporting Configuration Schema.

Defines the product lines whose profit the balance sheet and analytics
report, plus report formatting options.  A product line pairs an income
category (sales) with an expense category (purchases) in one domain.
"""

from dataclasses import dataclass, field
from typing import Self

from billing_kernel.domain.values import Domain
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class ProductLine:
    """
    A sold product whose purchases are booked in the same domain.

    profit = sum(sales_category) - sum(purchase_category).
    """

    name: str
    sales_category: str
    purchase_category: str


def _default_product_lines() -> dict[str, tuple[ProductLine, ...]]:
    return {
        Domain.PHARMACY.value: (
            ProductLine("medicine", "Medicine Sales", "Medicine Purchase"),
        ),
        Domain.EYEWEAR.value: (
            ProductLine("glasses", "Glasses Sales", "Glasses Purchase"),
            ProductLine("lens", "Lens Sales", "Lens Purchase"),
        ),
    }


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls product-line profit and the analytics trend window.
    """

    # Domain -> product lines reported on its balance sheet
    product_lines: dict[str, tuple[ProductLine, ...]] = field(
        default_factory=_default_product_lines,
    )

    # Months in the analytics income/expense trend
    trend_months: int = 12

    # Rounding precision for display (percentages and averages)
    display_precision: int = 2

    def __post_init__(self):
        if self.trend_months < 1:
            raise ValueError("trend_months must be at least 1")
        if self.display_precision < 0:
            raise ValueError("display_precision cannot be negative")
        valid_domains = {d.value for d in Domain}
        unknown = sorted(set(self.product_lines) - valid_domains)
        if unknown:
            raise ValueError(f"product_lines has unknown domains: {unknown}")

    def lines_for(self, domain: Domain | str) -> tuple[ProductLine, ...]:
        return self.product_lines.get(Domain.parse(domain).value, ())

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        data = dict(data)
        if "product_lines" in data and isinstance(data["product_lines"], dict):
            data["product_lines"] = {
                domain: tuple(
                    line if isinstance(line, ProductLine) else ProductLine(**line)
                    for line in lines
                )
                for domain, lines in data["product_lines"].items()
            }
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
