"""Initial tables: networks, locations, partners, fleet, pricing, wash events, invoices

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _network_fk() -> sa.Column:
    return sa.Column("network_id", sa.BigInteger(), sa.ForeignKey("networks.id"), nullable=False)


def _discount_tiers(prefix: str) -> list[sa.Column]:
    columns = []
    for level in range(1, 6):
        columns.append(
            sa.Column(f"{prefix}_discount_threshold_{level}", sa.Integer(), nullable=True)
        )
        columns.append(
            sa.Column(f"{prefix}_discount_percent_{level}", sa.Numeric(5, 2), nullable=True)
        )
    return columns


def upgrade() -> None:
    # Networks (tenants)
    op.create_table(
        "networks",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_networks_slug", "networks", ["slug"], unique=True)

    op.create_table(
        "network_settings",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "network_id", sa.BigInteger(), sa.ForeignKey("networks.id"), nullable=False
        ),
        sa.Column("invoice_provider", sa.String(20), nullable=False, server_default="NONE"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="HUF"),
        sa.Column("szamlazz_agent_key", sa.String(255), nullable=True),
        sa.Column("billingo_api_key", sa.String(255), nullable=True),
        sa.Column("billingo_block_id", sa.Integer(), nullable=True),
        sa.Column("billingo_bank_account_id", sa.Integer(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("network_id"),
    )

    # Partner companies
    op.create_table(
        "partner_companies",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("billing_type", sa.String(20), nullable=False, server_default="CONTRACT"),
        sa.Column("payment_due_days", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("billing_name", sa.String(255), nullable=True),
        sa.Column("billing_address", sa.String(255), nullable=True),
        sa.Column("billing_city", sa.String(100), nullable=True),
        sa.Column("billing_zip_code", sa.String(20), nullable=True),
        sa.Column("billing_country", sa.String(2), nullable=True),
        sa.Column("tax_number", sa.String(50), nullable=True),
        sa.Column("eu_vat_number", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_discount_tiers("own"),
        *_discount_tiers("sub"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("network_id", "code", name="uq_partner_network_code"),
    )
    op.create_index("ix_partner_companies_network_id", "partner_companies", ["network_id"])

    # Service packages
    op.create_table(
        "service_packages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("network_id", "code", name="uq_service_package_network_code"),
    )
    op.create_index("ix_service_packages_network_id", "service_packages", ["network_id"])

    # Locations
    op.create_table(
        "locations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("location_type", sa.String(20), nullable=False, server_default="TRUCK_WASH"),
        sa.Column("operation_type", sa.String(20), nullable=False, server_default="OWN"),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="NETWORK_ONLY"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("network_id", "code", name="uq_location_network_code"),
    )
    op.create_index("ix_locations_network_id", "locations", ["network_id"])
    op.create_index("ix_locations_operation_type", "locations", ["operation_type"])

    op.create_table(
        "location_dedicated_partners",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "location_id",
            sa.BigInteger(),
            sa.ForeignKey("locations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "location_id", "partner_company_id", name="uq_location_dedicated_partner"
        ),
    )
    op.create_index(
        "ix_location_dedicated_partners_location_id",
        "location_dedicated_partners",
        ["location_id"],
    )
    op.create_index(
        "ix_location_dedicated_partners_partner_company_id",
        "location_dedicated_partners",
        ["partner_company_id"],
    )

    op.create_table(
        "location_service_availability",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "location_id",
            sa.BigInteger(),
            sa.ForeignKey("locations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("location_id", "service_package_id", name="uq_location_service"),
    )
    op.create_index(
        "ix_location_service_availability_network_id",
        "location_service_availability",
        ["network_id"],
    )
    op.create_index(
        "ix_location_service_availability_location_id",
        "location_service_availability",
        ["location_id"],
    )
    op.create_index(
        "ix_location_service_availability_service_package_id",
        "location_service_availability",
        ["service_package_id"],
    )

    # Drivers and vehicles
    op.create_table(
        "drivers",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=True,
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_drivers_network_id", "drivers", ["network_id"])
    op.create_index("ix_drivers_partner_company_id", "drivers", ["partner_company_id"])

    op.create_table(
        "vehicles",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=True,
        ),
        sa.Column("driver_id", sa.BigInteger(), sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("plate_number", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vehicles_network_id", "vehicles", ["network_id"])
    op.create_index("ix_vehicles_partner_company_id", "vehicles", ["partner_company_id"])
    op.create_index("ix_vehicles_driver_id", "vehicles", ["driver_id"])
    op.create_index("ix_vehicles_plate_number", "vehicles", ["plate_number"])

    # Prices
    op.create_table(
        "service_prices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=False,
        ),
        sa.Column("vehicle_type", sa.String(30), nullable=False),
        sa.Column("price", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="HUF"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "network_id", "service_package_id", "vehicle_type", name="uq_service_price_key"
        ),
    )
    op.create_index("ix_service_prices_network_id", "service_prices", ["network_id"])
    op.create_index(
        "ix_service_prices_service_package_id", "service_prices", ["service_package_id"]
    )

    op.create_table(
        "partner_custom_prices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=False,
        ),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=False,
        ),
        sa.Column("vehicle_type", sa.String(30), nullable=False),
        sa.Column("price", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="HUF"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "partner_company_id",
            "service_package_id",
            "vehicle_type",
            name="uq_partner_custom_price_key",
        ),
    )
    op.create_index("ix_partner_custom_prices_network_id", "partner_custom_prices", ["network_id"])
    op.create_index(
        "ix_partner_custom_prices_partner_company_id",
        "partner_custom_prices",
        ["partner_company_id"],
    )
    op.create_index(
        "ix_partner_custom_prices_service_package_id",
        "partner_custom_prices",
        ["service_package_id"],
    )

    # Invoices (before wash events, which reference them)
    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=True,
        ),
        sa.Column("invoice_type", sa.String(20), nullable=False, server_default="PERIODIC"),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("discount_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column(
            "subtotal_after_discount", sa.Numeric(15, 2), nullable=False, server_default="0.00"
        ),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("vat_amount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("total", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="HUF"),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("billing_name", sa.String(255), nullable=False),
        sa.Column("billing_address", sa.String(255), nullable=False, server_default=""),
        sa.Column("billing_city", sa.String(100), nullable=False, server_default=""),
        sa.Column("billing_zip_code", sa.String(20), nullable=False, server_default=""),
        sa.Column("billing_country", sa.String(2), nullable=False, server_default="HU"),
        sa.Column("tax_number", sa.String(50), nullable=True),
        sa.Column("eu_vat_number", sa.String(50), nullable=True),
        sa.Column("invoice_number", sa.String(100), nullable=True),
        sa.Column("external_id", sa.String(100), nullable=True),
        sa.Column("pdf_url", sa.Text(), nullable=True),
        sa.Column("provider_name", sa.String(50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoices_network_id", "invoices", ["network_id"])
    op.create_index("ix_invoices_partner_company_id", "invoices", ["partner_company_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"])

    # Wash events
    op.create_table(
        "wash_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _network_fk(),
        sa.Column("location_id", sa.BigInteger(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("entry_mode", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="CREATED"),
        sa.Column("driver_id", sa.BigInteger(), sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column(
            "partner_company_id",
            sa.BigInteger(),
            sa.ForeignKey("partner_companies.id"),
            nullable=True,
        ),
        sa.Column("driver_name_manual", sa.String(200), nullable=True),
        sa.Column(
            "tractor_vehicle_id", sa.BigInteger(), sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("tractor_plate_manual", sa.String(20), nullable=True),
        sa.Column(
            "trailer_vehicle_id", sa.BigInteger(), sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("trailer_plate_manual", sa.String(20), nullable=True),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=False,
        ),
        sa.Column("tractor_price", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("trailer_price", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("total_price", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("final_price", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="HUF"),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("authorized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_wash_events_network_id", "wash_events", ["network_id"])
    op.create_index("ix_wash_events_location_id", "wash_events", ["location_id"])
    op.create_index("ix_wash_events_status", "wash_events", ["status"])
    op.create_index("ix_wash_events_driver_id", "wash_events", ["driver_id"])
    op.create_index("ix_wash_events_partner_company_id", "wash_events", ["partner_company_id"])
    op.create_index("ix_wash_events_service_package_id", "wash_events", ["service_package_id"])
    op.create_index("ix_wash_events_invoice_id", "wash_events", ["invoice_id"])
    op.create_index("ix_wash_events_completed_at", "wash_events", ["completed_at"])
    # Discount counting and invoice preparation scan by partner and completion time
    op.create_index(
        "ix_wash_events_partner_status_completed",
        "wash_events",
        ["network_id", "partner_company_id", "status", "completed_at"],
    )

    op.create_table(
        "wash_event_service_lines",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "wash_event_id",
            sa.BigInteger(),
            sa.ForeignKey("wash_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=False,
        ),
        sa.Column("vehicle_type", sa.String(30), nullable=False),
        sa.Column("vehicle_role", sa.String(10), nullable=False),
        sa.Column("plate_number", sa.String(20), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("is_custom_price", sa.Boolean(), nullable=False, server_default="false"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_wash_event_service_lines_wash_event_id",
        "wash_event_service_lines",
        ["wash_event_id"],
    )

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "invoice_id",
            sa.BigInteger(),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("vat_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column(
            "wash_event_id", sa.BigInteger(), sa.ForeignKey("wash_events.id"), nullable=True
        ),
        sa.Column(
            "service_package_id",
            sa.BigInteger(),
            sa.ForeignKey("service_packages.id"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])
    op.create_index("ix_invoice_items_wash_event_id", "invoice_items", ["wash_event_id"])

    # Audit trail
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("network_id", sa.BigInteger(), nullable=True),
        sa.Column("wash_event_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_type", sa.String(30), nullable=False),
        sa.Column("actor_id", sa.String(100), nullable=True),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=True),
        sa.Column("previous_data", postgresql.JSONB(), nullable=True),
        sa.Column("new_data", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_network_id", "audit_logs", ["network_id"])
    op.create_index("ix_audit_logs_wash_event_id", "audit_logs", ["wash_event_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("invoice_items")
    op.drop_table("wash_event_service_lines")
    op.drop_table("wash_events")
    op.drop_table("invoices")
    op.drop_table("partner_custom_prices")
    op.drop_table("service_prices")
    op.drop_table("vehicles")
    op.drop_table("drivers")
    op.drop_table("location_service_availability")
    op.drop_table("location_dedicated_partners")
    op.drop_table("locations")
    op.drop_table("service_packages")
    op.drop_table("partner_companies")
    op.drop_table("network_settings")
    op.drop_table("networks")
