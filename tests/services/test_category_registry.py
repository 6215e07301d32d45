"""
Tests for CategoryRegistry: lookup, find-or-create, fallback order.
"""

import pytest
from sqlalchemy import func, select

from billing_kernel.domain.values import TransactionType
from billing_kernel.exceptions import ValidationError
from billing_kernel.models.category import AccountCategory
from billing_kernel.services.category_service import CategoryRegistry


@pytest.fixture
def registry(session, deterministic_clock) -> CategoryRegistry:
    return CategoryRegistry(session, deterministic_clock)


def _count(session) -> int:
    return session.execute(select(func.count()).select_from(AccountCategory)).scalar_one()


class TestFindOrCreate:

    def test_creates_once(self, session, registry, test_actor_id):
        first = registry.find_or_create("facility", "Refunds", "expense", test_actor_id)
        second = registry.find_or_create("facility", "Refunds", TransactionType.EXPENSE, test_actor_id)
        assert first.id == second.id
        assert _count(session) == 1

    def test_name_is_trimmed(self, registry, test_actor_id):
        category = registry.find_or_create("facility", "  Refunds ", "expense", test_actor_id)
        assert category.name == "Refunds"

    def test_same_name_different_type_is_distinct(self, session, registry, test_actor_id):
        registry.find_or_create("pharmacy", "Medicine", "income", test_actor_id)
        registry.find_or_create("pharmacy", "Medicine", "expense", test_actor_id)
        assert _count(session) == 2

    def test_same_name_different_domain_is_distinct(self, session, registry, test_actor_id):
        registry.find_or_create("pharmacy", "Refunds", "expense", test_actor_id)
        registry.find_or_create("eyewear", "Refunds", "expense", test_actor_id)
        assert _count(session) == 2

    def test_empty_name_rejected(self, registry, test_actor_id):
        with pytest.raises(ValidationError):
            registry.find_or_create("facility", "   ", "income", test_actor_id)

    def test_returns_inactive_category(self, registry, test_actor_id):
        category = registry.create("facility", "Old", "expense", test_actor_id, is_active=False)
        assert registry.find_or_create("facility", "Old", "expense", test_actor_id).id == category.id


class TestCreateAndActivation:

    def test_duplicate_create_rejected(self, registry, test_actor_id):
        registry.create("facility", "Consultation", "income", test_actor_id)
        with pytest.raises(ValidationError) as exc_info:
            registry.create("facility", "Consultation", "income", test_actor_id)
        assert exc_info.value.field == "name"

    def test_deactivate_and_activate(self, registry, test_actor_id):
        category = registry.create("facility", "Consultation", "income", test_actor_id)
        registry.deactivate(category.id, test_actor_id)
        assert not category.is_active
        assert category.updated_by_id == test_actor_id
        registry.activate(category.id, test_actor_id)
        assert category.is_active

    def test_list_categories(self, registry, test_actor_id):
        registry.create("facility", "B", "income", test_actor_id)
        registry.create("facility", "A", "income", test_actor_id)
        registry.create("facility", "Z", "expense", test_actor_id, is_active=False)

        assert [c.name for c in registry.list_categories("facility")] == ["Z", "A", "B"]
        assert [c.name for c in registry.list_categories("facility", "income")] == ["A", "B"]
        assert registry.list_categories("facility", active_only=True)[0].name == "A"


class TestFirstActive:

    def test_oldest_active_wins(self, registry, deterministic_clock, test_actor_id):
        registry.create("facility", "Zeta", "income", test_actor_id)
        deterministic_clock.advance(60)
        registry.create("facility", "Alpha", "income", test_actor_id)

        assert registry.first_active("facility", "income").name == "Zeta"

    def test_ties_broken_by_name(self, registry, test_actor_id):
        registry.create("facility", "Zeta", "income", test_actor_id)
        registry.create("facility", "Alpha", "income", test_actor_id)
        assert registry.first_active("facility", "income").name == "Alpha"

    def test_skips_inactive_and_other_types(self, registry, deterministic_clock, test_actor_id):
        old = registry.create("facility", "Old", "income", test_actor_id)
        registry.deactivate(old.id, test_actor_id)
        deterministic_clock.advance(1)
        registry.create("facility", "Expense", "expense", test_actor_id)
        deterministic_clock.advance(1)
        registry.create("facility", "New", "income", test_actor_id)

        assert registry.first_active("facility", "income").name == "New"

    def test_none_when_nothing_active(self, registry):
        assert registry.first_active("operations", "income") is None


class TestCreationLogging:

    def test_find_or_create_logs_category_name(self, registry, test_actor_id, captured_logs):
        category = registry.find_or_create("pharmacy", "Refunds", "expense", test_actor_id)

        created = [r for r in captured_logs() if r["message"] == "category_created"]
        assert len(created) == 1
        assert created[0]["category_name"] == "Refunds"
        assert created[0]["domain"] == "pharmacy"
        assert category.name == "Refunds"

    def test_create_logs_category_name(self, registry, test_actor_id, captured_logs):
        registry.create("eyewear", "Lens Sales", "income", test_actor_id)
        registry.create("eyewear", "Lens Sales", "expense", test_actor_id)

        names = [r["category_name"] for r in captured_logs() if "category_name" in r]
        assert names == ["Lens Sales", "Lens Sales"]
