"""Errors raised by the CTO capacity services.

Every error carries a stable ``code`` and the HTTP status the API layer maps it
to (see ``app.errors``).
"""

from __future__ import annotations


class CtoError(Exception):
    """Base exception for CTO service errors."""

    code = "cto_error"
    status_code = 400

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or None


class InvalidCoordinate(CtoError):
    """Latitude/longitude missing, non-numeric or out of range."""

    code = "invalid_coordinate"
    status_code = 400


class CapacityExceeded(CtoError):
    """No free port left on the CTO."""

    code = "capacity_exceeded"
    status_code = 409


class InvalidPort(CtoError):
    """Port number out of range or not currently reserved."""

    code = "invalid_port"
    status_code = 409


class CapacityBelowUsage(CtoError):
    """Port count would drop below the ports in use."""

    code = "capacity_below_usage"
    status_code = 409


class CtoHasReservedPorts(CtoError):
    """CTO cannot be removed while ports are reserved."""

    code = "cto_has_reserved_ports"
    status_code = 409


class CustomerAlreadyAssigned(CtoError):
    """A concurrent request linked the same customer first."""

    code = "customer_already_assigned"
    status_code = 409


class TenantMismatch(CtoError):
    """Caller tried to reach an entity owned by another tenant."""

    code = "tenant_mismatch"
    status_code = 403
