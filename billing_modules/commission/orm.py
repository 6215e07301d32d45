"""
Commission ORM Models (``billing_modules.commission.orm``).

Responsibility
--------------
Persistence for practitioners, appointments, fee schedules and
commissions.  Practitioners, appointments and fee schedules are maintained
by upstream scheduling workflows and are only read here.

Architecture position
---------------------
**Modules layer** -- persistence.  MUST NOT be imported by ``billing_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_modules.commission.models import CommissionStatus


class PractitionerModel(TrackedBase):
    """ORM model for practitioners (doctors)."""

    __tablename__ = "practitioners"

    __table_args__ = (
        UniqueConstraint("code", name="uq_practitioners_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from billing_modules.commission.models import Practitioner

        return Practitioner(
            id=self.id, code=self.code, name=self.name, is_active=self.is_active
        )


class AppointmentModel(TrackedBase):
    """
    ORM model for appointments.

    Links a patient visit to the practitioner who saw them; the invoice for
    the visit points here.
    """

    __tablename__ = "appointments"

    __table_args__ = (
        Index("idx_appointments_practitioner", "practitioner_id"),
    )

    patient_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("patients.id"), nullable=False
    )
    practitioner_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("practitioners.id"), nullable=True
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    practitioner: Mapped["PractitionerModel | None"] = relationship()


class FeeScheduleModel(TrackedBase):
    """
    ORM model for service fee schedules.

    Guarantees:
        - base_price > 0 so the commission percentage is always defined.
    """

    __tablename__ = "fee_schedules"

    __table_args__ = (
        CheckConstraint("base_price > 0", name="ck_fee_schedules_base_price_positive"),
        Index("idx_fee_schedules_service_active", "service_type", "is_active"),
    )

    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(nullable=False)
    practitioner_fee: Mapped[Decimal] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from billing_modules.commission.models import FeeSchedule

        return FeeSchedule(
            id=self.id,
            service_type=self.service_type,
            base_price=self.base_price,
            practitioner_fee=self.practitioner_fee,
            is_active=self.is_active,
        )


class CommissionModel(TrackedBase):
    """
    ORM model for practitioner commissions.

    Guarantees:
        - payment_id is unique (uq_commissions_payment): at most one
          commission per payment, enforced by the database.
    """

    __tablename__ = "commissions"

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_commissions_payment"),
        Index("idx_commissions_practitioner_status", "practitioner_id", "status"),
    )

    practitioner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("practitioners.id"), nullable=False
    )
    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    percentage: Mapped[Decimal] = mapped_column(nullable=False)
    earned_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), default=CommissionStatus.PENDING.value, nullable=False
    )
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self):
        from billing_modules.commission.models import Commission

        return Commission(
            id=self.id,
            practitioner_id=self.practitioner_id,
            payment_id=self.payment_id,
            amount=self.amount,
            percentage=self.percentage,
            earned_date=self.earned_date,
            status=CommissionStatus(self.status),
            paid_date=self.paid_date,
        )

    def __repr__(self) -> str:
        return f"<CommissionModel payment={self.payment_id} {self.amount} {self.status}>"
