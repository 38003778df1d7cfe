"""Invoice and invoice line model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .reservation import Reservation


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"


INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.ISSUED, InvoiceStatus.PAID}),
    InvoiceStatus.ISSUED: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}


class InvoiceItemType(str, Enum):
    """Kind of invoice line."""
    ROOM = "room"
    CONSUMPTION = "consumption"
    TAX = "tax"


class Invoice(Base):
    """Invoice aggregating the charges of one reservation."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # At most one invoice per reservation
    reservation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reservations.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True
    )
    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    hotel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hotels.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    subtotal_room_charges: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal_consumption_charges: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    taxes_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount_due: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
        index=True
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_amount_due >= 0", name="ck_invoice_total_non_negative"),
    )

    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="invoice")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position"
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, invoice_number='{self.invoice_number}', "
            f"reservation_id={self.reservation_id}, total_amount_due={self.total_amount_due}, "
            f"status={self.status})>"
        )


class InvoiceItem(Base):
    """Immutable invoice line."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<InvoiceItem(id={self.id}, invoice_id={self.invoice_id}, item_type={self.item_type}, "
            f"total_price={self.total_price})>"
        )
