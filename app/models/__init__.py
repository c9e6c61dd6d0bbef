from app.models.gis import MapLocation  # noqa: F401
from app.models.network import (  # noqa: F401
    Cto,
    CtoGroup,
    CtoPortAssignment,
    PortStatus,
)
