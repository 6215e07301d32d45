"""
Tests for LedgerService -- the single write path into the ledger.

Validates:
- append() resolves categories by id or name and allocates seq
- Draft validation: positive Decimal amount, known domain and type
- Category/domain and category/type agreement
- One entry per reference
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from billing_kernel.domain.values import (
    Domain,
    LedgerEntryDraft,
    LedgerReference,
    TransactionType,
)
from billing_kernel.exceptions import (
    CategoryMismatchError,
    CategoryNotFoundError,
    InvalidAmountError,
    InvalidDomainError,
    ValidationError,
)
from billing_kernel.services.category_service import CategoryRegistry
from billing_kernel.services.ledger_service import LedgerService


@pytest.fixture
def ledger_service(session, deterministic_clock) -> LedgerService:
    return LedgerService(session, deterministic_clock)


@pytest.fixture
def registry(session, deterministic_clock) -> CategoryRegistry:
    return CategoryRegistry(session, deterministic_clock)


def _draft(**overrides) -> LedgerEntryDraft:
    fields = dict(
        domain=Domain.FACILITY,
        type=TransactionType.INCOME,
        amount=Decimal("100"),
        category="Consultation",
        transaction_date=date(2024, 1, 1),
        reference=LedgerReference.manual(uuid4()),
    )
    fields.update(overrides)
    return LedgerEntryDraft(**fields)


class TestAppend:

    def test_append_by_name_creates_category(self, session, ledger_service, test_actor_id):
        row = ledger_service.append(_draft(), test_actor_id)
        session.commit()

        assert row.seq == 1
        assert row.domain == "facility"
        assert row.type == "income"
        assert row.amount == Decimal("100")
        assert row.category.name == "Consultation"
        assert row.created_by_id == test_actor_id

    def test_seq_strictly_increasing(self, ledger_service, test_actor_id):
        seqs = [ledger_service.append(_draft(), test_actor_id).seq for _ in range(5)]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == 5

    def test_append_by_category_id(self, ledger_service, registry, test_actor_id):
        category = registry.create("pharmacy", "Medicine Purchase", "expense", test_actor_id)
        row = ledger_service.append(
            _draft(domain="pharmacy", type="expense", category=category.id),
            test_actor_id,
        )
        assert row.category_id == category.id

    def test_unknown_category_id(self, ledger_service, test_actor_id):
        with pytest.raises(CategoryNotFoundError):
            ledger_service.append(_draft(category=uuid4()), test_actor_id)

    def test_category_of_other_domain(self, ledger_service, registry, test_actor_id):
        category = registry.create("eyewear", "Lens Sales", "income", test_actor_id)
        with pytest.raises(CategoryMismatchError) as exc_info:
            ledger_service.append(_draft(category=category.id), test_actor_id)
        assert exc_info.value.expected == "facility"
        assert exc_info.value.actual == "eyewear"

    def test_category_of_other_type(self, ledger_service, registry, test_actor_id):
        category = registry.create("facility", "Utilities", "expense", test_actor_id)
        with pytest.raises(CategoryMismatchError):
            ledger_service.append(_draft(category=category.id), test_actor_id)

    def test_same_reference_twice_rejected(self, ledger_service, test_actor_id):
        reference = LedgerReference.payment(uuid4())
        ledger_service.append(_draft(reference=reference), test_actor_id)
        with pytest.raises(IntegrityError):
            ledger_service.append(_draft(reference=reference), test_actor_id)


class TestDraftValidation:

    @pytest.mark.parametrize(
        "amount", [Decimal("0"), Decimal("-0.01"), Decimal("NaN"), Decimal("Infinity")]
    )
    def test_unusable_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            _draft(amount=amount)

    def test_float_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _draft(amount=10.5)
        assert exc_info.value.field == "amount"

    def test_unknown_domain(self):
        with pytest.raises(InvalidDomainError):
            _draft(domain="canteen")

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc_info:
            _draft(type="transfer")
        assert exc_info.value.field == "type"

    def test_strings_are_parsed(self):
        draft = _draft(domain=" Pharmacy ", type="EXPENSE")
        assert draft.domain is Domain.PHARMACY
        assert draft.type is TransactionType.EXPENSE

    def test_unknown_reference_kind(self):
        with pytest.raises(ValidationError):
            LedgerReference("invoice", uuid4())
