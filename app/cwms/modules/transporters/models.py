from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cwms.models import Base

if TYPE_CHECKING:
    from app.cwms.modules.invoices.models import Invoice
    from app.cwms.modules.outward.models import OutwardEntry


class Transporter(Base):
    __tablename__ = "transporters"
    __table_args__ = (
        Index("idx_transporters_name", "name"),
        Index("idx_transporters_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    transporter_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gst_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    outward_entries: Mapped[list["OutwardEntry"]] = relationship(
        "OutwardEntry",
        back_populates="transporter",
        lazy="select",
    )
    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="transporter",
        lazy="select",
    )
