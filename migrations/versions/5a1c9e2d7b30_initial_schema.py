"""initial schema: accounts, audit, companies, transporters, inward/outward, invoices, settings

Revision ID: 5a1c9e2d7b30
Revises:
Create Date: 2026-01-05 10:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1c9e2d7b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    ]


def upgrade() -> None:
    # Accounts / RBAC
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
    )
    op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("idx_audit_events_entity", "audit_events", ["entity_type", "entity_id"])

    # Parties
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("gst_number", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_companies_name", "companies", ["name"])
    op.create_index("idx_companies_gst_number", "companies", ["gst_number"])

    op.create_table(
        "company_materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("material_name", sa.String(255), nullable=False),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("company_id", "material_name", name="uq_company_materials_company_material"),
    )
    op.create_index("idx_company_materials_company", "company_materials", ["company_id"])

    op.create_table(
        "transporters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("transporter_code", sa.String(64), nullable=True),
        sa.Column("gst_number", sa.String(32), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("mobile", sa.String(64), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("idx_transporters_name", "transporters", ["name"])
    op.create_index("idx_transporters_is_active", "transporters", ["is_active"])

    # Invoices
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_no", sa.String(64), nullable=False, unique=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("transporter_id", sa.Integer(), sa.ForeignKey("transporters.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("gst_no", sa.String(32), nullable=True),
        sa.Column("billed_to", sa.Text(), nullable=True),
        sa.Column("shipped_to", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("additional_charges", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("additional_charges_description", sa.String(512), nullable=True),
        sa.Column("cgst_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("sgst_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("cgst", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("sgst", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("grand_total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("payment_received", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("payment_received_on", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("idx_invoices_type", "invoices", ["type"])
    op.create_index("idx_invoices_status", "invoices", ["status"])
    op.create_index("idx_invoices_date", "invoices", ["date"])
    op.create_index("idx_invoices_company", "invoices", ["company_id"])
    op.create_index("idx_invoices_transporter", "invoices", ["transporter_id"])

    # Entries
    op.create_table(
        "inward_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sr_no", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("lot_no", sa.String(64), nullable=False, unique=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("manifest_no", sa.String(128), nullable=False),
        sa.Column("vehicle_no", sa.String(64), nullable=True),
        sa.Column("waste_name", sa.String(255), nullable=False),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("month", sa.String(32), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_inward_entries_date", "inward_entries", ["date"])
    op.create_index("idx_inward_entries_company", "inward_entries", ["company_id"])
    op.create_index("idx_inward_entries_manifest_no", "inward_entries", ["manifest_no"])
    op.create_index("idx_inward_entries_invoice", "inward_entries", ["invoice_id"])

    op.create_table(
        "inward_materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inward_entry_id", sa.Integer(), sa.ForeignKey("inward_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transporter_name", sa.String(255), nullable=True),
        sa.Column("vehicle_no", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_inward_materials_entry", "inward_materials", ["inward_entry_id"])

    op.create_table(
        "outward_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sr_no", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(32), nullable=True),
        sa.Column("cement_company", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("manifest_no", sa.String(128), nullable=True),
        sa.Column("transporter_id", sa.Integer(), sa.ForeignKey("transporters.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("vehicle_no", sa.String(64), nullable=True),
        sa.Column("waste_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("packing", sa.String(128), nullable=True),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_outward_entries_date", "outward_entries", ["date"])
    op.create_index("idx_outward_entries_transporter", "outward_entries", ["transporter_id"])
    op.create_index("idx_outward_entries_invoice", "outward_entries", ["invoice_id"])

    # Invoice lines
    op.create_table(
        "invoice_materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("material_name", sa.String(255), nullable=False),
        sa.Column("manifest_no", sa.String(128), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("inward_entry_id", sa.Integer(), sa.ForeignKey("inward_entries.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_invoice_materials_invoice", "invoice_materials", ["invoice_id"])
    op.create_index("idx_invoice_materials_inward_entry", "invoice_materials", ["inward_entry_id"])

    op.create_table(
        "invoice_manifests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("manifest_no", sa.String(128), nullable=False),
        sa.UniqueConstraint("invoice_id", "manifest_no", name="uq_invoice_manifests_invoice_manifest"),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(128), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("description", sa.String(512), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )


def downgrade() -> None:
    for table in (
        "settings",
        "invoice_manifests",
        "invoice_materials",
        "outward_entries",
        "inward_materials",
        "inward_entries",
        "invoices",
        "transporters",
        "company_materials",
        "companies",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
