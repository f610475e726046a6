import enum
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Date, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.session import Base
from portal.models.client import Client
from portal.models.common import IdMixin, TimestampMixin
from portal.models.payment import Payment, PaymentStatus
from portal.models.project import Project
from portal.models.user import User

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


class InvoiceStatus(enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    CANCELLED = "CANCELLED"


class Invoice(Base, IdMixin, TimestampMixin):
    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, native_enum=False, length=20), nullable=False, default=InvoiceStatus.DRAFT, index=True
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 2), nullable=False, default=_ZERO)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(19, 2), nullable=False, default=_ZERO)
    tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(19, 2), nullable=True)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount: Mapped[Decimal | None] = mapped_column(Numeric(19, 2), nullable=True)
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(19, 2), nullable=True)
    amount_due: Mapped[Decimal | None] = mapped_column(Numeric(19, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    project_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    freelancer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sent_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    client: Mapped[Client] = relationship(Client)
    project: Mapped[Project | None] = relationship(Project)
    freelancer: Mapped[User] = relationship(User)
    payments: Mapped[list[Payment]] = relationship(Payment, back_populates="invoice", cascade="all, delete-orphan")

    def recalculate_amounts(self) -> None:
        """Derive tax, total, paid and due amounts from subtotal, rate, discount and completed payments."""
        subtotal = self.subtotal or _ZERO
        discount = self.discount or _ZERO
        if self.tax_rate is not None:
            self.tax_amount = (subtotal * self.tax_rate / Decimal("100")).quantize(_CENT, rounding=ROUND_HALF_UP)
        tax_amount = self.tax_amount or _ZERO
        self.subtotal = subtotal
        self.discount = discount
        self.tax_amount = tax_amount
        self.amount = subtotal + tax_amount - discount
        self.amount_paid = sum(
            (p.amount for p in self.payments if p.status == PaymentStatus.COMPLETED and p.amount is not None),
            _ZERO,
        )
        self.amount_due = max(self.amount - self.amount_paid, _ZERO)

    def apply_payment_status(self, today: date | None = None) -> None:
        """Move to PAID once nothing is due; a paid invoice whose payments vanish goes back to SENT.

        Partial payments leave the status alone. Call after ``recalculate_amounts``.
        """
        if not self.amount_paid:
            if self.status is InvoiceStatus.PAID:
                self.status = InvoiceStatus.SENT
                self.paid_date = None
            return
        if self.amount_due is not None and self.amount_due <= _ZERO:
            self.status = InvoiceStatus.PAID
            if self.paid_date is None:
                self.paid_date = today or date.today()
        elif self.status is InvoiceStatus.PAID:
            self.status = InvoiceStatus.PARTIALLY_PAID
            self.paid_date = None
