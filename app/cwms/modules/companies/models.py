from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cwms.models import Base

if TYPE_CHECKING:
    from app.cwms.modules.inward.models import InwardEntry
    from app.cwms.modules.invoices.models import Invoice


class Company(Base):
    __tablename__ = "companies"
    __table_args__ = (
        Index("idx_companies_name", "name"),
        Index("idx_companies_gst_number", "gst_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Required
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Optional metadata
    gst_number: Mapped[str | None] = mapped_column(String(32), nullable=True)  # 15-char GSTIN
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    materials: Mapped[list["CompanyMaterial"]] = relationship(
        "CompanyMaterial",
        back_populates="company",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CompanyMaterial.material_name",
    )
    inward_entries: Mapped[list["InwardEntry"]] = relationship(
        "InwardEntry",
        back_populates="company",
        lazy="select",
    )
    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="company",
        lazy="select",
    )


class CompanyMaterial(Base):
    """One row of a company's price list (what we charge per unit of a waste stream)."""

    __tablename__ = "company_materials"
    __table_args__ = (
        UniqueConstraint("company_id", "material_name", name="uq_company_materials_company_material"),
        Index("idx_company_materials_company", "company_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)

    material_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)  # price per unit
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)  # e.g. "MT", "KG"
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    company: Mapped["Company"] = relationship("Company", back_populates="materials")
