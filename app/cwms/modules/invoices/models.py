from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cwms.models import Base

if TYPE_CHECKING:
    from app.cwms.modules.companies.models import Company
    from app.cwms.modules.inward.models import InwardEntry
    from app.cwms.modules.outward.models import OutwardEntry
    from app.cwms.modules.transporters.models import Transporter


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        Index("idx_invoices_type", "type"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_date", "date"),
        Index("idx_invoices_company", "company_id"),
        Index("idx_invoices_transporter", "transporter_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    invoice_no: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "INV-202601-0001"
    type: Mapped[str] = mapped_column(String(32), nullable=False)  # Inward, Outward, Transporter
    date: Mapped[date] = mapped_column(Date, nullable=False)

    # Party being billed: a company for Inward, a transporter for Outward/Transporter.
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=True)
    transporter_id: Mapped[int | None] = mapped_column(ForeignKey("transporters.id", ondelete="RESTRICT"), nullable=True)

    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gst_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    billed_to: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipped_to: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Money
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    additional_charges: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    additional_charges_description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    cgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))  # percent
    sgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))  # percent
    cgst: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    sgst: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    # Payment
    payment_received: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    payment_received_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, partial, paid

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    company: Mapped["Company | None"] = relationship("Company", back_populates="invoices", lazy="selectin")
    transporter: Mapped["Transporter | None"] = relationship("Transporter", back_populates="invoices", lazy="selectin")
    invoice_materials: Mapped[list["InvoiceMaterial"]] = relationship(
        "InvoiceMaterial",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceMaterial.position",
    )
    invoice_manifests: Mapped[list["InvoiceManifest"]] = relationship(
        "InvoiceManifest",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceManifest.position",
    )
    inward_entries: Mapped[list["InwardEntry"]] = relationship(
        "InwardEntry",
        back_populates="invoice",
        lazy="selectin",
        order_by="InwardEntry.date",
    )
    outward_entries: Mapped[list["OutwardEntry"]] = relationship(
        "OutwardEntry",
        back_populates="invoice",
        lazy="selectin",
        order_by="OutwardEntry.date",
    )


class InvoiceMaterial(Base):
    __tablename__ = "invoice_materials"
    __table_args__ = (
        Index("idx_invoice_materials_invoice", "invoice_id"),
        Index("idx_invoice_materials_inward_entry", "inward_entry_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # line order on the invoice

    material_name: Mapped[str] = mapped_column(String(255), nullable=False)
    manifest_no: Mapped[str | None] = mapped_column(String(128), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Inward entry this line was billed from (used to avoid billing an entry twice on append).
    inward_entry_id: Mapped[int | None] = mapped_column(ForeignKey("inward_entries.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="invoice_materials")


class InvoiceManifest(Base):
    __tablename__ = "invoice_manifests"
    __table_args__ = (
        UniqueConstraint("invoice_id", "manifest_no", name="uq_invoice_manifests_invoice_manifest"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    manifest_no: Mapped[str] = mapped_column(String(128), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="invoice_manifests")
