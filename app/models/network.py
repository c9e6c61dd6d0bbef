import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.ext.hybrid import hybrid_property

from app.db import Base


class PortStatus(enum.Enum):
    free = "free"
    used = "used"


class CtoGroup(Base):
    __tablename__ = "cto_groups"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_cto_groups_tenant_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="#3B82F6")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    ctos = relationship("Cto", back_populates="group")


class Cto(Base):
    """Caixa Terminal Optica: street cabinet terminating subscriber drops."""

    __tablename__ = "ctos"
    __table_args__ = (
        CheckConstraint("total_ports >= 1", name="ck_ctos_total_ports_positive"),
        CheckConstraint("used_ports >= 0", name="ck_ctos_used_ports_non_negative"),
        CheckConstraint("used_ports <= total_ports", name="ck_ctos_used_ports_within_total"),
        Index("ix_ctos_tenant_active", "tenant_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    group_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("cto_groups.id", ondelete="SET NULL")
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    total_ports: Mapped[int] = mapped_column(Integer, nullable=False, default=16)
    # Only the capacity ledger writes this column.
    used_ports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    group = relationship("CtoGroup", back_populates="ctos")
    port_assignments = relationship(
        "CtoPortAssignment",
        back_populates="cto",
        order_by="CtoPortAssignment.port_number",
    )

    @hybrid_property
    def free_ports(self) -> int:
        return self.total_ports - self.used_ports


class CtoPortAssignment(Base):
    """One reserved port on a CTO, optionally occupied by a customer."""

    __tablename__ = "cto_port_assignments"
    __table_args__ = (
        UniqueConstraint("cto_id", "port_number", name="uq_cto_port_assignments_port"),
        UniqueConstraint(
            "tenant_id", "customer_id", name="uq_cto_port_assignments_customer"
        ),
        CheckConstraint("port_number >= 1", name="ck_cto_port_assignments_port_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    cto_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("ctos.id"), nullable=False, index=True
    )
    port_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # Customers live in the external customer registry.
    customer_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    cto = relationship("Cto", back_populates="port_assignments")
