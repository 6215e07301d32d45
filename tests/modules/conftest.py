"""
Fixtures for module tests: services wired on one session, a seeded clinic
(payment methods, income categories, a patient, a practitioner with an
appointment) and an invoice factory.
"""

from decimal import Decimal

import pytest

from billing_kernel.domain.values import Domain, TransactionType
from billing_kernel.selectors.ledger_selector import LedgerSelector
from billing_kernel.services.category_service import CategoryRegistry
from billing_modules.commission.service import CommissionCalculator
from billing_modules.funds.service import FundService
from billing_modules.invoicing.installments import InstallmentTracker
from billing_modules.invoicing.models import LineItemSpec, LineItemType
from billing_modules.invoicing.tracker import InvoiceTracker
from billing_modules.payments.config import PaymentConfig
from billing_modules.payments.service import PaymentProcessor
from billing_modules.reporting.service import ReportingService

# Income categories seeded per domain, oldest first
SEEDED_INCOME_CATEGORIES = {
    Domain.FACILITY: ("Registration", "Consultation", "Vision Test"),
    Domain.PHARMACY: ("Medicine Sales",),
    Domain.EYEWEAR: ("Glasses Sales", "Lens Sales"),
    Domain.OPERATIONS: ("Operation Income",),
}


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def payment_config() -> PaymentConfig:
    return PaymentConfig.with_defaults()


@pytest.fixture
def processor(session, payment_config, deterministic_clock) -> PaymentProcessor:
    return PaymentProcessor(session, payment_config, deterministic_clock)


@pytest.fixture
def invoices(session, payment_config, deterministic_clock) -> InvoiceTracker:
    return InvoiceTracker(session, payment_config, deterministic_clock)


@pytest.fixture
def installments(session, payment_config, deterministic_clock, invoices) -> InstallmentTracker:
    return InstallmentTracker(session, payment_config, deterministic_clock, invoices)


@pytest.fixture
def categories(session, deterministic_clock) -> CategoryRegistry:
    return CategoryRegistry(session, deterministic_clock)


@pytest.fixture
def commissions(session, payment_config, deterministic_clock) -> CommissionCalculator:
    return CommissionCalculator(session, payment_config, deterministic_clock)


@pytest.fixture
def funds(session, deterministic_clock) -> FundService:
    return FundService(session, clock=deterministic_clock)


@pytest.fixture
def reporting(session, deterministic_clock) -> ReportingService:
    return ReportingService(session, clock=deterministic_clock)


@pytest.fixture
def ledger(session) -> LedgerSelector:
    return LedgerSelector(session)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def cash_method(processor, test_actor_id):
    return processor.add_payment_method("cash", "Cash", test_actor_id)


@pytest.fixture
def card_method(processor, test_actor_id):
    return processor.add_payment_method("card", "Card", test_actor_id)


@pytest.fixture
def seeded_categories(session, categories, deterministic_clock, test_actor_id):
    """
    Income categories per domain, created one second apart so that
    first_active() order is the declaration order.
    """
    created = {}
    for domain, names in SEEDED_INCOME_CATEGORIES.items():
        for name in names:
            created[(domain.value, name)] = categories.create(
                domain, name, TransactionType.INCOME, test_actor_id
            )
            deterministic_clock.advance(1)
    session.commit()
    return created


@pytest.fixture
def patient(session, invoices, test_actor_id):
    p = invoices.register_patient("P-0001", "Test Patient", test_actor_id)
    session.commit()
    return p


@pytest.fixture
def other_patient(session, invoices, test_actor_id):
    p = invoices.register_patient("P-0002", "Other Patient", test_actor_id)
    session.commit()
    return p


@pytest.fixture
def practitioner(session, commissions, test_actor_id):
    doctor = commissions.add_practitioner("DR-01", "Dr. Test", test_actor_id)
    session.commit()
    return doctor


@pytest.fixture
def appointment(session, commissions, patient, practitioner, test_actor_id):
    visit = commissions.add_appointment(patient.id, practitioner.id, test_actor_id)
    session.commit()
    return visit


@pytest.fixture
def create_invoice(session, invoices, patient, test_actor_id):
    """
    Factory: create_invoice(total, kind="consultation", **kwargs).

    Builds a single line of the invoice kind's item type unless ``lines``
    is given.
    """

    def _create(
        total: Decimal | str = Decimal("1000"),
        kind: str = "consultation",
        lines=None,
        patient_id=None,
        **kwargs,
    ):
        total = Decimal(str(total))
        if lines is None:
            item_type = kind if kind in {t.value for t in LineItemType} else LineItemType.OTHER
            lines = [LineItemSpec(item_type, f"{kind} charge", total)]
        invoice = invoices.create_invoice(
            patient_id or patient.id, kind, lines, test_actor_id, **kwargs
        )
        session.commit()
        return invoice

    return _create


@pytest.fixture
def clinic(seeded_categories, cash_method, patient):
    """Shorthand: categories, a cash method and a patient are in place."""
    return {"categories": seeded_categories, "cash": cash_method, "patient": patient}
