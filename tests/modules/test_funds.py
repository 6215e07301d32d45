"""
Tests for FundService: fund vouchers and manual ledger entries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from billing_kernel.domain.values import ReferenceKind, TransactionType
from billing_kernel.exceptions import (
    CategoryMismatchError,
    InvalidAmountError,
    InvalidDomainError,
    PaymentMethodNotFoundError,
    ValidationError,
)
from billing_kernel.models.ledger import LedgerTransaction
from billing_modules.funds.config import FundConfig
from billing_modules.funds.models import FundDirection
from billing_modules.funds.orm import FundMovementModel
from billing_modules.funds.service import FundService


class TestFundMovements:

    def test_fund_in_books_income(self, funds, ledger, deterministic_clock, test_actor_id):
        movement = funds.fund_in("pharmacy", Decimal("5000"), "Owner top-up", test_actor_id)

        assert movement.voucher_no == "FI-000001"
        assert movement.direction == FundDirection.FUND_IN
        assert movement.movement_date == deterministic_clock.today()

        entries = ledger.entries("pharmacy")
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == movement.ledger_transaction_id
        assert entry.type == TransactionType.INCOME.value
        assert entry.category_name == "Fund In"
        assert entry.reference_kind == ReferenceKind.FUND_MOVEMENT.value
        assert entry.meta["voucher_no"] == "FI-000001"
        assert ledger.balance_as_of("pharmacy", deterministic_clock.today()) == Decimal("5000")

    def test_fund_out_books_expense(self, funds, ledger, deterministic_clock, test_actor_id):
        funds.fund_in("eyewear", Decimal("1000"), "Float", test_actor_id)
        movement = funds.fund_out(
            "eyewear", Decimal("300"), "Bank deposit", test_actor_id, description="slip 44",
        )

        assert movement.voucher_no == "FO-000001"
        entry = ledger.entries("eyewear", type="expense")[0]
        assert entry.category_name == "Fund Out"
        assert entry.description == "FO-000001: Bank deposit"
        assert ledger.balance_as_of("eyewear", deterministic_clock.today()) == Decimal("700")

    def test_fund_movements_excluded_from_income_totals(self, funds, ledger, test_actor_id):
        funds.fund_in("facility", Decimal("100"), "Float", test_actor_id)
        totals = ledger.totals("facility")
        assert totals.income == Decimal("0")
        assert totals.fund_in == Decimal("100")
        assert totals.net == Decimal("100")

    def test_custom_config(self, session, deterministic_clock, ledger, test_actor_id):
        service = FundService(
            session,
            FundConfig(fund_in_category="Capital", fund_in_prefix="CAP", number_width=3),
            deterministic_clock,
        )
        movement = service.fund_in("operations", Decimal("10"), "Seed", test_actor_id)
        assert movement.voucher_no == "CAP-001"
        assert ledger.entries("operations")[0].category_name == "Capital"

    @pytest.mark.parametrize(
        "amount",
        [Decimal("0"), Decimal("-1"), None, "abc", Decimal("NaN"), Decimal("Infinity")],
    )
    def test_non_positive_amount_rejected(self, session, funds, amount, test_actor_id):
        with pytest.raises(InvalidAmountError):
            funds.fund_in("facility", amount, "x", test_actor_id)
        count = session.execute(
            select(func.count()).select_from(FundMovementModel)
        ).scalar_one()
        assert count == 0

    def test_purpose_required(self, funds, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            funds.fund_out("facility", Decimal("5"), "   ", test_actor_id)
        assert exc_info.value.field == "purpose"

    def test_unknown_domain(self, funds, test_actor_id):
        with pytest.raises(InvalidDomainError):
            funds.fund_in("canteen", Decimal("5"), "x", test_actor_id)

    def test_fund_history(self, funds, test_actor_id):
        funds.fund_in("facility", Decimal("100"), "a", test_actor_id, movement_date=date(2024, 1, 3))
        funds.fund_out("facility", Decimal("40"), "b", test_actor_id, movement_date=date(2024, 1, 5))
        funds.fund_in("facility", Decimal("60"), "c", test_actor_id, movement_date=date(2024, 1, 9))
        funds.fund_in("pharmacy", Decimal("1"), "other domain", test_actor_id)

        history = funds.fund_history("facility")
        assert [m.purpose for m in history] == ["a", "b", "c"]
        assert all(m.ledger_transaction_id is not None for m in history)

        window = funds.fund_history("facility", from_date=date(2024, 1, 4), to_date=date(2024, 1, 9))
        assert [m.purpose for m in window] == ["b", "c"]

        ins = funds.fund_history("facility", direction="fund_in")
        assert [m.voucher_no for m in ins] == ["FI-000001", "FI-000002"]


class TestManualEntries:

    def test_record_expense_creates_category(self, funds, ledger, test_actor_id):
        record = funds.record_expense(
            "pharmacy", Decimal("250"), "Medicine Purchase", test_actor_id,
            description="Supplier invoice 118",
        )
        assert record.type == TransactionType.EXPENSE.value
        assert record.category_name == "Medicine Purchase"
        assert record.reference_kind == ReferenceKind.MANUAL.value
        assert ledger.totals("pharmacy").expense == Decimal("250")

    def test_record_income_with_method(
        self, funds, cash_method, deterministic_clock, test_actor_id,
    ):
        record = funds.record_income(
            "eyewear", Decimal("90"), "Glasses Sales", test_actor_id,
            payment_method_id=cash_method.id, income_date=date(2023, 12, 30),
        )
        assert record.payment_method_id == cash_method.id
        assert record.transaction_date == date(2023, 12, 30)

    def test_unknown_payment_method(self, session, funds, test_actor_id):
        with pytest.raises(PaymentMethodNotFoundError):
            funds.record_expense(
                "facility", Decimal("5"), "Utilities", test_actor_id,
                payment_method_id=uuid4(),
            )
        count = session.execute(
            select(func.count()).select_from(LedgerTransaction)
        ).scalar_one()
        assert count == 0

    def test_category_id_of_wrong_type_rejected(
        self, funds, seeded_categories, test_actor_id,
    ):
        income_category = seeded_categories[("facility", "Consultation")]
        with pytest.raises(CategoryMismatchError):
            funds.record_expense("facility", Decimal("5"), income_category.id, test_actor_id)

    def test_category_id_of_other_domain_rejected(
        self, funds, seeded_categories, test_actor_id,
    ):
        pharmacy_income = seeded_categories[("pharmacy", "Medicine Sales")]
        with pytest.raises(CategoryMismatchError):
            funds.record_income("facility", Decimal("5"), pharmacy_income.id, test_actor_id)
