"""Create tax compliance tables (profiles, document compliance, e-invoice exchange)

Revision ID: 20260301_tax_compliance_de
Revises:
Create Date: 2026-03-01 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260301_tax_compliance_de"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "tenant_tax_profiles",
        sa.Column("tenant_id", sa.String(64), primary_key=True),
        sa.Column("business_name", sa.Text(), nullable=True),
        sa.Column("tax_number", sa.String(64), nullable=True),
        sa.Column("vat_id", sa.String(32), nullable=True),
        sa.Column("small_business_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("default_tax_category", sa.String(32), nullable=False, server_default="standard"),
        sa.Column("supply_date_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("service_date_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("country_code", sa.String(2), nullable=False, server_default="DE"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "billing_document_compliance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("plugin_key", sa.String(64), nullable=False),
        sa.Column("is_sealed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seal_hash", sa.String(64), nullable=True),
        sa.Column("sealed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("preflight_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("preflight_report_json", sa.Text(), nullable=True),
        sa.Column("correction_of_document_id", sa.Integer(), nullable=True),
        sa.Column("correction_reason", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "document_id", name="uq_billing_document_compliance_document"),
    )

    op.create_table(
        "billing_einvoice_exchange",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=True),
        sa.Column("exchange_direction", sa.String(8), nullable=False),
        sa.Column("invoice_format", sa.String(16), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("xml_content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_billing_einvoice_exchange_tenant_document",
        "billing_einvoice_exchange",
        ["tenant_id", "document_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_billing_einvoice_exchange_tenant_document", table_name="billing_einvoice_exchange")
    op.drop_table("billing_einvoice_exchange")
    op.drop_table("billing_document_compliance")
    op.drop_table("tenant_tax_profiles")
