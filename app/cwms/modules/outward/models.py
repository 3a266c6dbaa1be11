from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cwms.models import Base

if TYPE_CHECKING:
    from app.cwms.modules.invoices.models import Invoice
    from app.cwms.modules.transporters.models import Transporter


class OutwardEntry(Base):
    __tablename__ = "outward_entries"
    __table_args__ = (
        Index("idx_outward_entries_date", "date"),
        Index("idx_outward_entries_transporter", "transporter_id"),
        Index("idx_outward_entries_invoice", "invoice_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    sr_no: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    month: Mapped[str | None] = mapped_column(String(32), nullable=True)

    cement_company: Mapped[str | None] = mapped_column(String(255), nullable=True)  # co-processing destination
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manifest_no: Mapped[str | None] = mapped_column(String(128), nullable=True)
    transporter_id: Mapped[int | None] = mapped_column(ForeignKey("transporters.id", ondelete="RESTRICT"), nullable=True)
    vehicle_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    waste_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    packing: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    transporter: Mapped["Transporter | None"] = relationship("Transporter", back_populates="outward_entries", lazy="selectin")
    invoice: Mapped["Invoice | None"] = relationship("Invoice", back_populates="outward_entries", lazy="selectin")
