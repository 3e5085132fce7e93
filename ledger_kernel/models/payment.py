"""
Module: ledger_kernel.models.payment
Responsibility: Read model of customer payments recorded by billing.  The
    reconciliation matcher reads these rows as candidates for incoming bank
    credits; the ledger core never writes them outside of fixtures and
    imports.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class Payment(TrackedBase):
    """A customer payment received against an invoice."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_company_date", "company_id", "payment_date"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    reference_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    cheque_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    customer_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    invoice_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Payment {self.payment_date} {self.amount} ref={self.reference_number}>"
