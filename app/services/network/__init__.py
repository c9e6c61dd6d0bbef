"""CTO capacity services.

Submodules:
- geo: coordinate validation and great-circle distance
- spatial: nearest-CTO candidate search
- capacity: per-CTO port ledger
- assignments: customer to CTO association
- ctos: CTO and CTO group management
- map_locations: remembered map viewport
"""

from app.services.network.assignments import Assignment, CtoAssignments, cto_assignments
from app.services.network.capacity import CapacityLedger, capacity_ledger
from app.services.network.ctos import CtoGroups, Ctos, cto_groups, ctos
from app.services.network.map_locations import MapLocations, map_locations

__all__ = [
    "Assignment",
    "CtoAssignments",
    "cto_assignments",
    "CapacityLedger",
    "capacity_ledger",
    "CtoGroups",
    "cto_groups",
    "Ctos",
    "ctos",
    "MapLocations",
    "map_locations",
]
