"""create ipam tables

Revision ID: 8c1e4f2a9b7d
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = "8c1e4f2a9b7d"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

subnet_type = sa.Enum("public", "private", "cgnat", "ipv6", name="subnettype")
allocation_mode = sa.Enum("dynamic", "static", name="allocationmode")
address_status = sa.Enum("available", "assigned", "reserved", name="ipaddressstatus")
reserved_reason = sa.Enum("network", "broadcast", "gateway", name="reservedreason")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    # Owned by the dashboard; only created here for standalone deployments.
    if "routers" not in existing_tables:
        op.create_table(
            "routers",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("name", sa.String(160), nullable=False),
            sa.Column("ip_address", sa.String(64), nullable=True),
            sa.Column("location", sa.String(160), nullable=True),
        )
    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("first_name", sa.String(80), nullable=True),
            sa.Column("last_name", sa.String(80), nullable=True),
            sa.Column("business_name", sa.String(160), nullable=True),
            sa.Column("email", sa.String(255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
    if "customer_services" not in existing_tables:
        op.create_table(
            "customer_services",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("status", sa.String(40), nullable=False, server_default="active"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index(
            "ix_customer_services_customer_id", "customer_services", ["customer_id"]
        )

    op.create_table(
        "subnets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("router_id", sa.Integer, sa.ForeignKey("routers.id"), nullable=False),
        sa.Column("cidr", sa.String(18), nullable=False),
        sa.Column("network_address", sa.String(15), nullable=False),
        sa.Column("prefix_length", sa.Integer, nullable=False),
        sa.Column("first_address", sa.BigInteger, nullable=False),
        sa.Column("last_address", sa.BigInteger, nullable=False),
        sa.Column("subnet_type", subnet_type, nullable=False),
        sa.Column("allocation_mode", allocation_mode, nullable=False),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("gateway", sa.String(15), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("cidr", name="uq_subnets_cidr"),
        sa.CheckConstraint("first_address <= last_address", name="ck_subnets_range_order"),
        sa.CheckConstraint(
            "prefix_length >= 0 AND prefix_length <= 32", name="ck_subnets_prefix_length"
        ),
    )
    op.create_index("ix_subnets_router_id", "subnets", ["router_id"])
    op.create_index("ix_subnets_range", "subnets", ["first_address", "last_address"])
    op.execute(
        "ALTER TABLE subnets ADD CONSTRAINT ex_subnets_no_overlap "
        "EXCLUDE USING gist (int8range(first_address, last_address, '[]') WITH &&)"
    )

    op.create_table(
        "ip_addresses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "subnet_id",
            UUID(as_uuid=True),
            sa.ForeignKey("subnets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("address", sa.String(15), nullable=False),
        sa.Column("address_int", sa.BigInteger, nullable=False),
        sa.Column("status", address_status, nullable=False),
        sa.Column("reserved_reason", reserved_reason, nullable=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=True),
        sa.Column(
            "service_id", sa.Integer, sa.ForeignKey("customer_services.id"), nullable=True
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("subnet_id", "address", name="uq_ip_addresses_subnet_address"),
        sa.CheckConstraint(
            "(status = 'assigned') = (customer_id IS NOT NULL)",
            name="ck_ip_addresses_assigned_binding",
        ),
        sa.CheckConstraint(
            "(status = 'reserved') = (reserved_reason IS NOT NULL)",
            name="ck_ip_addresses_reserved_reason",
        ),
    )
    op.create_index("ix_ip_addresses_subnet_status", "ip_addresses", ["subnet_id", "status"])
    op.create_index(
        "ix_ip_addresses_subnet_address_int", "ip_addresses", ["subnet_id", "address_int"]
    )
    op.create_index("ix_ip_addresses_customer_id", "ip_addresses", ["customer_id"])

    op.create_table(
        "ip_pool_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("subnet_id", UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("actor", sa.String(255), nullable=True),
        sa.Column("details", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ip_pool_events_subnet_id", "ip_pool_events", ["subnet_id"])
    op.create_index("ix_ip_pool_events_action", "ip_pool_events", ["action"])


def downgrade() -> None:
    op.drop_index("ix_ip_pool_events_action", table_name="ip_pool_events")
    op.drop_index("ix_ip_pool_events_subnet_id", table_name="ip_pool_events")
    op.drop_table("ip_pool_events")
    op.drop_index("ix_ip_addresses_customer_id", table_name="ip_addresses")
    op.drop_index("ix_ip_addresses_subnet_address_int", table_name="ip_addresses")
    op.drop_index("ix_ip_addresses_subnet_status", table_name="ip_addresses")
    op.drop_table("ip_addresses")
    op.drop_index("ix_subnets_range", table_name="subnets")
    op.drop_index("ix_subnets_router_id", table_name="subnets")
    op.drop_table("subnets")
    bind = op.get_bind()
    for enum_type in (reserved_reason, address_status, allocation_mode, subnet_type):
        enum_type.drop(bind, checkfirst=True)
