from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cwms.models import Base

if TYPE_CHECKING:
    from app.cwms.modules.companies.models import Company
    from app.cwms.modules.invoices.models import Invoice


class InwardEntry(Base):
    __tablename__ = "inward_entries"
    __table_args__ = (
        Index("idx_inward_entries_date", "date"),
        Index("idx_inward_entries_company", "company_id"),
        Index("idx_inward_entries_manifest_no", "manifest_no"),
        Index("idx_inward_entries_invoice", "invoice_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    sr_no: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    lot_no: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "LOT-202601-0001"

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False)
    manifest_no: Mapped[str] = mapped_column(String(128), nullable=False)
    vehicle_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    waste_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    month: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # An entry is billed on at most one invoice.
    invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    company: Mapped["Company"] = relationship("Company", back_populates="inward_entries", lazy="selectin")
    invoice: Mapped["Invoice | None"] = relationship("Invoice", back_populates="inward_entries", lazy="selectin")
    inward_materials: Mapped[list["InwardMaterial"]] = relationship(
        "InwardMaterial",
        back_populates="inward_entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InwardMaterial.created_at",
    )


class InwardMaterial(Base):
    """Transport/disposal line recorded against an inward entry."""

    __tablename__ = "inward_materials"
    __table_args__ = (
        Index("idx_inward_materials_entry", "inward_entry_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inward_entry_id: Mapped[int] = mapped_column(ForeignKey("inward_entries.id", ondelete="CASCADE"), nullable=False)

    transporter_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vehicle_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 3), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    inward_entry: Mapped["InwardEntry"] = relationship("InwardEntry", back_populates="inward_materials")
