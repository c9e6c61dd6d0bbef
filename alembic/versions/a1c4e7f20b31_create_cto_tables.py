"""create cto tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cto_groups",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("color", sa.String(16), nullable=False, server_default="#3B82F6"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "name", name="uq_cto_groups_tenant_name"),
    )
    op.create_index("ix_cto_groups_tenant_id", "cto_groups", ["tenant_id"])

    op.create_table(
        "ctos",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "group_id",
            UUID(as_uuid=True),
            sa.ForeignKey("cto_groups.id", ondelete="SET NULL"),
        ),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("address", sa.String(500)),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("total_ports", sa.Integer, nullable=False, server_default="16"),
        sa.Column("used_ports", sa.Integer, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("total_ports >= 1", name="ck_ctos_total_ports_positive"),
        sa.CheckConstraint("used_ports >= 0", name="ck_ctos_used_ports_non_negative"),
        sa.CheckConstraint("used_ports <= total_ports", name="ck_ctos_used_ports_within_total"),
    )
    op.create_index("ix_ctos_tenant_id", "ctos", ["tenant_id"])
    op.create_index("ix_ctos_tenant_active", "ctos", ["tenant_id", "is_active"])

    op.create_table(
        "cto_port_assignments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("cto_id", UUID(as_uuid=True), sa.ForeignKey("ctos.id"), nullable=False),
        sa.Column("port_number", sa.Integer, nullable=False),
        sa.Column("customer_id", UUID(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("cto_id", "port_number", name="uq_cto_port_assignments_port"),
        sa.UniqueConstraint(
            "tenant_id", "customer_id", name="uq_cto_port_assignments_customer"
        ),
        sa.CheckConstraint("port_number >= 1", name="ck_cto_port_assignments_port_positive"),
    )
    op.create_index(
        "ix_cto_port_assignments_tenant_id", "cto_port_assignments", ["tenant_id"]
    )
    op.create_index("ix_cto_port_assignments_cto_id", "cto_port_assignments", ["cto_id"])

    op.create_table(
        "map_locations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("zoom", sa.Integer, nullable=False, server_default="13"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_map_locations_tenant_created", "map_locations", ["tenant_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_map_locations_tenant_created", table_name="map_locations")
    op.drop_table("map_locations")
    op.drop_index("ix_cto_port_assignments_cto_id", table_name="cto_port_assignments")
    op.drop_index("ix_cto_port_assignments_tenant_id", table_name="cto_port_assignments")
    op.drop_table("cto_port_assignments")
    op.drop_index("ix_ctos_tenant_active", table_name="ctos")
    op.drop_index("ix_ctos_tenant_id", table_name="ctos")
    op.drop_table("ctos")
    op.drop_index("ix_cto_groups_tenant_id", table_name="cto_groups")
    op.drop_table("cto_groups")
