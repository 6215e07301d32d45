"""
Payment Processing Configuration Schema.

Defines the structure and sensible defaults for payment desk settings.
Actual values are loaded from ``billing_config`` (YAML) at runtime.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from billing_kernel.domain.values import Domain
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.payments.config")


def _default_kind_categories() -> dict[str, str]:
    return {
        "registration": "Registration",
        "consultation": "Consultation",
        "vision_test": "Vision Test",
        "medicine": "Medicine Sales",
    }


def _default_kind_domains() -> dict[str, str]:
    return {
        "registration": Domain.FACILITY.value,
        "consultation": Domain.FACILITY.value,
        "vision_test": Domain.FACILITY.value,
        "medicine": Domain.PHARMACY.value,
        "eyewear": Domain.EYEWEAR.value,
        "operation": Domain.OPERATIONS.value,
        "other": Domain.FACILITY.value,
    }


@dataclass
class PaymentConfig:
    """
    Configuration schema for the payment desk.

    Override at instantiation with clinic-specific values:

        config = PaymentConfig(
            default_commission_rate=Decimal("50"),
            **load_config(path).payments_overrides,
        )
    """

    # Invoice kind -> income category name
    kind_categories: dict[str, str] = field(default_factory=_default_kind_categories)
    default_income_category: str = "Consultation"

    # Expense category receiving refunds (created on first refund)
    refund_category: str = "Refunds"

    # Ledger routing
    default_domain: str = Domain.FACILITY.value
    kind_domains: dict[str, str] = field(default_factory=_default_kind_domains)

    # Commission rule
    commission_service_type: str = "consultation"
    commissionable_item_type: str = "consultation"
    default_commission_rate: Decimal = Decimal("60")

    # Reconciliation tolerance
    currency_epsilon: Decimal = Decimal("0.01")

    # Document numbering
    payment_number_prefix: str = "PAY"
    invoice_number_prefix: str = "INV"
    number_width: int = 6

    # Summaries
    recent_payments_limit: int = 5

    def __post_init__(self):
        self.default_commission_rate = Decimal(str(self.default_commission_rate))
        self.currency_epsilon = Decimal(str(self.currency_epsilon))

        if not Decimal("0") <= self.default_commission_rate <= Decimal("100"):
            raise ValueError("default_commission_rate must be between 0 and 100")
        if self.currency_epsilon <= 0:
            raise ValueError("currency_epsilon must be positive")
        if not self.default_income_category or not self.default_income_category.strip():
            raise ValueError("default_income_category cannot be empty")
        if not self.refund_category or not self.refund_category.strip():
            raise ValueError("refund_category cannot be empty")
        if self.number_width < 1:
            raise ValueError("number_width must be at least 1")
        if self.recent_payments_limit < 1:
            raise ValueError("recent_payments_limit must be at least 1")

        valid_domains = {d.value for d in Domain}
        if self.default_domain not in valid_domains:
            raise ValueError(
                f"default_domain must be one of {sorted(valid_domains)}, "
                f"got '{self.default_domain}'"
            )
        bad = {k: v for k, v in self.kind_domains.items() if v not in valid_domains}
        if bad:
            raise ValueError(f"kind_domains has unknown domains: {bad}")

        logger.info(
            "payment_config_initialized",
            extra={
                "default_domain": self.default_domain,
                "default_income_category": self.default_income_category,
                "refund_category": self.refund_category,
                "default_commission_rate": str(self.default_commission_rate),
                "kind_categories_count": len(self.kind_categories),
            },
        )

    def category_for_kind(self, kind: str | None) -> str:
        """Income category name for an invoice kind (default when unmapped)."""
        if kind is None:
            return self.default_income_category
        return self.kind_categories.get(kind, self.default_income_category)

    def domain_for_kind(self, kind: str | None) -> str:
        if kind is None:
            return self.default_domain
        return self.kind_domains.get(kind, self.default_domain)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the clinic's standard defaults."""
        logger.info("payment_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        logger.info(
            "payment_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        for key in ("default_commission_rate", "currency_epsilon"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        return cls(**data)
