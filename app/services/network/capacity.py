"""Port capacity ledger for CTOs.

The ledger is the only writer of ``Cto.used_ports``. Every mutation is a
conditional UPDATE checked on rows-affected, so two requests racing for the
last port of a cabinet cannot both win:

    UPDATE ctos SET used_ports = used_ports + 1
    WHERE id = :id AND tenant_id = :tenant AND used_ports < total_ports

Each reserved port is also materialized as a ``CtoPortAssignment`` row, which
lets a specific port be released while the others stay occupied.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.metrics import CTO_RESERVATION_CONFLICTS
from app.models.network import Cto, CtoPortAssignment, PortStatus
from app.services.common import coerce_uuid
from app.services.network._common import get_for_tenant
from app.services.network.exceptions import (
    CapacityBelowUsage,
    CapacityExceeded,
    CustomerAlreadyAssigned,
    InvalidPort,
)

logger = logging.getLogger(__name__)


def _active_cto(db: Session, tenant_id: UUID, cto_id) -> Cto:
    cto = get_for_tenant(db, Cto, cto_id, tenant_id, detail="CTO not found")
    if not cto.is_active:
        raise HTTPException(status_code=404, detail="CTO not found")
    return cto


def _taken_ports(db: Session, cto_id: UUID) -> dict[int, UUID | None]:
    rows = (
        db.query(CtoPortAssignment.port_number, CtoPortAssignment.customer_id)
        .filter(CtoPortAssignment.cto_id == cto_id)
        .all()
    )
    return {port_number: customer_id for port_number, customer_id in rows}


def _port_collision(exc: IntegrityError) -> bool:
    """True when the failed insert hit the per-CTO port number constraint."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == "uq_cto_port_assignments_port"
    message = str(exc.orig)
    return (
        "uq_cto_port_assignments_port" in message
        or "cto_port_assignments.port_number" in message
    )


class CapacityLedger:
    @staticmethod
    def has_free_capacity(cto: Cto) -> bool:
        return cto.used_ports < cto.total_ports

    @staticmethod
    def reserve_port(
        db: Session,
        tenant_id: UUID | str,
        cto_id: UUID | str,
        customer_id: UUID | str | None = None,
        *,
        commit: bool = True,
    ) -> int:
        """Reserve the lowest free port on a CTO and return its number.

        Raises:
            CapacityExceeded: the CTO has no free port
            CustomerAlreadyAssigned: the customer already holds a port
        """
        tenant_uuid = coerce_uuid(tenant_id)
        cto = _active_cto(db, tenant_uuid, cto_id)
        result = db.execute(
            update(Cto)
            .where(
                Cto.id == cto.id,
                Cto.tenant_id == tenant_uuid,
                Cto.used_ports < Cto.total_ports,
            )
            .values(used_ports=Cto.used_ports + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            CTO_RESERVATION_CONFLICTS.inc()
            logger.info("CTO %s is full, reservation rejected", cto.id)
            raise CapacityExceeded(f"CTO {cto.name} has no free ports", cto_id=str(cto.id))

        # The conditional update holds the row lock, so port selection below is
        # serialized per CTO.
        total_ports = db.query(Cto.total_ports).filter(Cto.id == cto.id).scalar()
        taken = _taken_ports(db, cto.id)
        port_number = next(
            (number for number in range(1, total_ports + 1) if number not in taken),
            None,
        )
        if port_number is None:
            db.rollback()
            raise CapacityExceeded(f"CTO {cto.name} has no free ports", cto_id=str(cto.id))
        db.add(
            CtoPortAssignment(
                tenant_id=tenant_uuid,
                cto_id=cto.id,
                port_number=port_number,
                customer_id=coerce_uuid(customer_id),
            )
        )
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if customer_id is not None and not _port_collision(exc):
                raise CustomerAlreadyAssigned(
                    "Customer already holds a port", customer_id=str(customer_id)
                ) from exc
            CTO_RESERVATION_CONFLICTS.inc()
            raise CapacityExceeded(
                f"Port {port_number} on CTO {cto.name} was taken concurrently",
                cto_id=str(cto.id),
            ) from exc
        db.expire(cto)
        if commit:
            db.commit()
        logger.debug("Reserved port %d on CTO %s", port_number, cto.id)
        return port_number

    @staticmethod
    def release_port(
        db: Session,
        tenant_id: UUID | str,
        cto_id: UUID | str,
        port_number: int,
        *,
        commit: bool = True,
    ) -> None:
        """Free a reserved port.

        Raises:
            InvalidPort: the port is out of range or not reserved
        """
        tenant_uuid = coerce_uuid(tenant_id)
        cto = _active_cto(db, tenant_uuid, cto_id)
        if port_number < 1 or port_number > cto.total_ports:
            raise InvalidPort(
                f"Port {port_number} does not exist on CTO {cto.name}",
                port_number=port_number,
            )
        deleted = db.execute(
            delete(CtoPortAssignment)
            .where(
                CtoPortAssignment.cto_id == cto.id,
                CtoPortAssignment.tenant_id == tenant_uuid,
                CtoPortAssignment.port_number == port_number,
            )
            .execution_options(synchronize_session=False)
        )
        if deleted.rowcount != 1:
            raise InvalidPort(
                f"Port {port_number} on CTO {cto.name} is not reserved",
                port_number=port_number,
            )
        result = db.execute(
            update(Cto)
            .where(
                Cto.id == cto.id,
                Cto.tenant_id == tenant_uuid,
                Cto.used_ports > 0,
            )
            .values(used_ports=Cto.used_ports - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise InvalidPort(
                f"CTO {cto.name} has no ports in use", port_number=port_number
            )
        db.expire(cto)
        if commit:
            db.commit()
        logger.debug("Released port %d on CTO %s", port_number, cto_id)

    @staticmethod
    def release_customer_port(
        db: Session,
        tenant_id: UUID | str,
        customer_id: UUID | str,
        *,
        commit: bool = True,
    ) -> tuple[UUID, int] | None:
        """Free whatever port the customer holds.

        Returns the released ``(cto_id, port_number)``, or None when the
        customer holds no port, including when a concurrent release got there
        first.
        """
        tenant_uuid = coerce_uuid(tenant_id)
        customer_uuid = coerce_uuid(customer_id)
        link = (
            db.query(CtoPortAssignment.cto_id, CtoPortAssignment.port_number)
            .filter(CtoPortAssignment.tenant_id == tenant_uuid)
            .filter(CtoPortAssignment.customer_id == customer_uuid)
            .first()
        )
        if link is None:
            return None
        cto_id, port_number = link
        deleted = db.execute(
            delete(CtoPortAssignment)
            .where(
                CtoPortAssignment.tenant_id == tenant_uuid,
                CtoPortAssignment.customer_id == customer_uuid,
                CtoPortAssignment.cto_id == cto_id,
                CtoPortAssignment.port_number == port_number,
            )
            .execution_options(synchronize_session=False)
        )
        if deleted.rowcount != 1:
            db.rollback()
            logger.info("Customer %s was already released", customer_uuid)
            return None
        result = db.execute(
            update(Cto)
            .where(Cto.id == cto_id, Cto.tenant_id == tenant_uuid, Cto.used_ports > 0)
            .values(used_ports=Cto.used_ports - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise InvalidPort(f"CTO {cto_id} has no ports in use", port_number=port_number)
        cto = db.get(Cto, cto_id)
        if cto is not None:
            db.expire(cto)
        if commit:
            db.commit()
        return cto_id, port_number

    @staticmethod
    def resize(
        db: Session,
        tenant_id: UUID | str,
        cto_id: UUID | str,
        new_total: int,
        *,
        commit: bool = True,
    ) -> Cto:
        """Change the port count of a CTO.

        Raises:
            CapacityBelowUsage: fewer ports than currently in use, or a
                reserved port number would fall outside the new range
        """
        tenant_uuid = coerce_uuid(tenant_id)
        cto = _active_cto(db, tenant_uuid, cto_id)
        if new_total < 1:
            raise CapacityBelowUsage("A CTO needs at least one port", total_ports=new_total)
        if new_total < cto.used_ports:
            raise CapacityBelowUsage(
                f"CTO {cto.name} has {cto.used_ports} ports in use",
                total_ports=new_total,
                used_ports=cto.used_ports,
            )

        def _highest_reserved() -> int:
            return (
                db.query(func.max(CtoPortAssignment.port_number))
                .filter(CtoPortAssignment.cto_id == cto.id)
                .scalar()
                or 0
            )

        highest = _highest_reserved()
        if highest > new_total:
            raise CapacityBelowUsage(
                f"Port {highest} on CTO {cto.name} is still reserved",
                total_ports=new_total,
                highest_reserved_port=highest,
            )
        result = db.execute(
            update(Cto)
            .where(
                Cto.id == cto.id,
                Cto.tenant_id == tenant_uuid,
                Cto.used_ports <= new_total,
            )
            .values(total_ports=new_total)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1 or _highest_reserved() > new_total:
            # A concurrent reservation landed between the checks and the update.
            db.rollback()
            raise CapacityBelowUsage(
                f"CTO {cto.name} ports changed while resizing", total_ports=new_total
            )
        db.expire(cto)
        if commit:
            db.commit()
            db.refresh(cto)
        logger.info("Resized CTO %s to %d ports", cto.id, new_total)
        return cto

    @staticmethod
    def port_statuses(db: Session, tenant_id: UUID | str, cto_id: UUID | str) -> list[dict]:
        """Return every port of a CTO in order with its status and occupant."""
        cto = _active_cto(db, coerce_uuid(tenant_id), cto_id)
        taken = _taken_ports(db, cto.id)
        return [
            {
                "port_number": number,
                "status": PortStatus.used if number in taken else PortStatus.free,
                "customer_id": taken.get(number),
            }
            for number in range(1, cto.total_ports + 1)
        ]


capacity_ledger = CapacityLedger()

__all__ = ["CapacityLedger", "capacity_ledger"]
