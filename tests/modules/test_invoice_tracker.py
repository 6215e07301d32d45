"""
Tests for InvoiceTracker: invoice registration and reconciliation.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import (
    InvalidAmountError,
    InvoiceNotFoundError,
    PatientNotFoundError,
    ValidationError,
)
from billing_modules.invoicing.models import (
    InvoiceKind,
    InvoiceStatus,
    LineItemSpec,
    PatientPaymentStatus,
    derive_invoice_status,
    derive_patient_status,
)


class TestStatusDerivation:

    @pytest.mark.parametrize(
        "paid, due, expected",
        [
            (Decimal("0"), Decimal("100"), InvoiceStatus.PENDING),
            (Decimal("40"), Decimal("60"), InvoiceStatus.PARTIALLY_PAID),
            (Decimal("100"), Decimal("0"), InvoiceStatus.PAID),
            (Decimal("-10"), Decimal("100"), InvoiceStatus.PENDING),
            # Zero-total invoice is paid on creation
            (Decimal("0"), Decimal("0"), InvoiceStatus.PAID),
        ],
    )
    def test_invoice_status(self, paid, due, expected):
        assert derive_invoice_status(paid, due) == expected

    @pytest.mark.parametrize(
        "due_total, paid_total, expected",
        [
            (Decimal("0"), Decimal("0"), PatientPaymentStatus.PAID),
            (Decimal("100"), Decimal("0"), PatientPaymentStatus.PENDING),
            (Decimal("100"), Decimal("5"), PatientPaymentStatus.PARTIAL),
        ],
    )
    def test_patient_status(self, due_total, paid_total, expected):
        assert derive_patient_status(due_total, paid_total) == expected


class TestCreateInvoice:

    def test_totals_and_numbering(self, invoices, patient, test_actor_id):
        first = invoices.create_invoice(
            patient.id, InvoiceKind.CONSULTATION,
            [LineItemSpec("consultation", "Consultation", Decimal("300"))],
            test_actor_id,
        )
        second = invoices.create_invoice(
            patient.id, "medicine",
            [LineItemSpec("medicine", "Eye drops", Decimal("12.50"), Decimal("4"))],
            test_actor_id,
            discount_amount=Decimal("5"),
        )

        assert first.invoice_number == "INV-000001"
        assert second.invoice_number == "INV-000002"
        assert first.domain == "facility"
        assert second.domain == "pharmacy"
        assert second.subtotal == Decimal("50.00")
        assert second.total_amount == Decimal("45.00")
        assert second.due_amount == Decimal("45.00")
        assert second.status == InvoiceStatus.PENDING.value
        assert [line.line_number for line in second.lines] == [1]

    def test_explicit_number_and_domain(self, invoices, patient, test_actor_id):
        invoice = invoices.create_invoice(
            patient.id, "other",
            [LineItemSpec("service", "Report copy", Decimal("10"))],
            test_actor_id,
            invoice_number="EXT-77",
            domain="operations",
        )
        assert invoice.invoice_number == "EXT-77"
        assert invoice.domain == "operations"

    def test_to_dto(self, create_invoice):
        dto = create_invoice(Decimal("80"), kind="vision_test").to_dto()
        assert dto.kind == InvoiceKind.VISION_TEST
        assert dto.status == InvoiceStatus.PENDING
        assert dto.lines[0].item_type == "vision_test"

    def test_unknown_kind(self, invoices, patient, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            invoices.create_invoice(
                patient.id, "massage",
                [LineItemSpec("other", "x", Decimal("1"))], test_actor_id,
            )
        assert exc_info.value.field == "kind"

    def test_unknown_patient(self, invoices, test_actor_id):
        with pytest.raises(PatientNotFoundError):
            invoices.create_invoice(
                uuid4(), "consultation",
                [LineItemSpec("consultation", "x", Decimal("1"))], test_actor_id,
            )

    def test_needs_lines(self, invoices, patient, test_actor_id):
        with pytest.raises(ValidationError):
            invoices.create_invoice(patient.id, "consultation", [], test_actor_id)

    def test_zero_quantity_rejected(self, invoices, patient, test_actor_id):
        with pytest.raises(InvalidAmountError):
            invoices.create_invoice(
                patient.id, "medicine",
                [LineItemSpec("medicine", "x", Decimal("5"), Decimal("0"))],
                test_actor_id,
            )

    def test_discount_above_subtotal_rejected(self, invoices, patient, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            invoices.create_invoice(
                patient.id, "consultation",
                [LineItemSpec("consultation", "x", Decimal("100"))],
                test_actor_id,
                discount_amount=Decimal("150"),
            )
        assert exc_info.value.field == "discount_amount"

    def test_get_invoice_unknown(self, invoices):
        with pytest.raises(InvoiceNotFoundError):
            invoices.get_invoice(uuid4())

    def test_register_patient_requires_code(self, invoices, test_actor_id):
        with pytest.raises(ValidationError):
            invoices.register_patient("  ", "Someone", test_actor_id)


class TestReconcile:

    def test_reconcile_is_idempotent(
        self, processor, invoices, clinic, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(Decimal("250"))
        processor.process_payment(
            clinic["patient"].id, Decimal("100"), clinic["cash"].id, test_actor_id,
            invoice_id=invoice.id,
        )

        invoices.reconcile(invoice)
        first = (invoice.paid_amount, invoice.due_amount, invoice.status)
        invoices.reconcile(invoice)
        assert (invoice.paid_amount, invoice.due_amount, invoice.status) == first
        assert first == (Decimal("100"), Decimal("150"), InvoiceStatus.PARTIALLY_PAID.value)

    def test_many_small_payments_do_not_drift(
        self, processor, invoices, clinic, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(Decimal("1.00"))
        for _ in range(10):
            processor.process_payment(
                clinic["patient"].id, Decimal("0.10"), clinic["cash"].id, test_actor_id,
                invoice_id=invoice.id,
            )
        assert invoices.paid_to_date(invoice.id) == Decimal("1.00")
        assert invoice.due_amount == Decimal("0")
        assert invoice.status == InvoiceStatus.PAID.value

    def test_outstanding_invoices(
        self, processor, invoices, clinic, create_invoice, test_actor_id,
    ):
        paid = create_invoice(Decimal("10"))
        open_invoice = create_invoice(Decimal("20"))
        processor.process_payment(
            clinic["patient"].id, Decimal("10"), clinic["cash"].id, test_actor_id,
            invoice_id=paid.id,
        )
        outstanding = invoices.outstanding_invoices(clinic["patient"].id)
        assert [inv.id for inv in outstanding] == [open_invoice.id]
