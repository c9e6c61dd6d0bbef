from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_id
from app.schemas.common import ListResponse
from app.schemas.network import (
    AssignmentCreate,
    AssignmentRead,
    AssignmentResult,
    CtoCandidateList,
    CtoCandidateRead,
    CtoCreate,
    CtoGroupCreate,
    CtoGroupRead,
    CtoGroupUpdate,
    CtoRead,
    CtoUpdate,
    CustomerCoordinates,
    ManualAssignmentCreate,
    MapLocationCreate,
    MapLocationRead,
    NearestCtoRead,
    PortReservationCreate,
    PortReservationRead,
    PortStatusRead,
)
from app.services.common import coerce_uuid
from app.services.network import (
    capacity_ledger,
    cto_assignments,
    cto_groups,
    ctos,
    map_locations,
)
from app.services.network.assignments import Assignment
from app.services.network.geo import distance_display
from app.services.network.spatial import CtoCandidate

router = APIRouter(prefix="/network")


def _candidate_read(candidate: CtoCandidate) -> CtoCandidateRead:
    return CtoCandidateRead(
        cto=CtoRead.model_validate(candidate.cto),
        distance_m=candidate.distance_m,
        distance_display=distance_display(candidate.distance_m),
        has_free_capacity=capacity_ledger.has_free_capacity(candidate.cto),
    )


def _assignment_read(assignment: Assignment) -> AssignmentRead:
    return AssignmentRead(
        customer_id=assignment.customer_id,
        cto=CtoRead.model_validate(assignment.cto),
        port_number=assignment.port_number,
        distance_m=assignment.distance_m,
    )


# CTO groups


@router.get(
    "/cto-groups",
    response_model=ListResponse[CtoGroupRead],
    tags=["cto-groups"],
)
def list_cto_groups(
    name: str | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return cto_groups.list_response(
        db,
        tenant_id,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        name=name,
    )


@router.post(
    "/cto-groups",
    response_model=CtoGroupRead,
    status_code=status.HTTP_201_CREATED,
    tags=["cto-groups"],
)
def create_cto_group(
    payload: CtoGroupCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return cto_groups.create(db, tenant_id, payload)


@router.get("/cto-groups/{group_id}", response_model=CtoGroupRead, tags=["cto-groups"])
def get_cto_group(
    group_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    return cto_groups.get(db, tenant_id, group_id)


@router.patch("/cto-groups/{group_id}", response_model=CtoGroupRead, tags=["cto-groups"])
def update_cto_group(
    group_id: str,
    payload: CtoGroupUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return cto_groups.update(db, tenant_id, group_id, payload)


@router.delete(
    "/cto-groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["cto-groups"],
)
def delete_cto_group(
    group_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    cto_groups.delete(db, tenant_id, group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# CTOs. Fixed paths come before /ctos/{cto_id}.


@router.get("/ctos/nearest", response_model=NearestCtoRead, tags=["ctos"])
def find_nearest_cto(
    latitude: float,
    longitude: float,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    candidate = cto_assignments.find_nearest_available(db, tenant_id, latitude, longitude)
    if candidate is None:
        return NearestCtoRead(found=False)
    return NearestCtoRead(
        found=True,
        cto=CtoRead.model_validate(candidate.cto),
        distance_m=candidate.distance_m,
        distance_display=distance_display(candidate.distance_m),
    )


@router.get("/ctos/nearest/candidates", response_model=CtoCandidateList, tags=["ctos"])
def list_cto_candidates(
    latitude: float,
    longitude: float,
    limit: int | None = Query(default=None, ge=1, le=100),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    candidates = cto_assignments.list_candidates(db, tenant_id, latitude, longitude, limit)
    return CtoCandidateList(
        options=[_candidate_read(candidate) for candidate in candidates],
        customer_coords=CustomerCoordinates(latitude=latitude, longitude=longitude),
    )


@router.get("/ctos", response_model=ListResponse[CtoRead], tags=["ctos"])
def list_ctos(
    name: str | None = None,
    group_id: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return ctos.list_response(
        db,
        tenant_id,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        name=name,
        group_id=group_id,
        is_active=is_active,
    )


@router.post(
    "/ctos",
    response_model=CtoRead,
    status_code=status.HTTP_201_CREATED,
    tags=["ctos"],
)
def create_cto(
    payload: CtoCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return ctos.create(db, tenant_id, payload)


@router.get("/ctos/{cto_id}", response_model=CtoRead, tags=["ctos"])
def get_cto(cto_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return ctos.get(db, tenant_id, cto_id)


@router.patch("/ctos/{cto_id}", response_model=CtoRead, tags=["ctos"])
def update_cto(
    cto_id: str,
    payload: CtoUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return ctos.update(db, tenant_id, cto_id, payload)


@router.delete("/ctos/{cto_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["ctos"])
def delete_cto(
    cto_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    ctos.delete(db, tenant_id, cto_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/ctos/{cto_id}/ports", response_model=list[PortStatusRead], tags=["cto-ports"])
def list_cto_ports(
    cto_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    return capacity_ledger.port_statuses(db, tenant_id, cto_id)


@router.post(
    "/ctos/{cto_id}/ports/reserve",
    response_model=PortReservationRead,
    status_code=status.HTTP_201_CREATED,
    tags=["cto-ports"],
)
def reserve_cto_port(
    cto_id: str,
    payload: PortReservationCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    port_number = capacity_ledger.reserve_port(
        db, tenant_id, cto_id, customer_id=payload.customer_id
    )
    return PortReservationRead(
        cto_id=coerce_uuid(cto_id), port_number=port_number, customer_id=payload.customer_id
    )


@router.delete(
    "/ctos/{cto_id}/ports/{port_number}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["cto-ports"],
)
def release_cto_port(
    cto_id: str,
    port_number: int,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    capacity_ledger.release_port(db, tenant_id, cto_id, port_number)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/ctos/{cto_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
    tags=["cto-assignments"],
)
def associate_customer_cto(
    cto_id: str,
    payload: ManualAssignmentCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    assignment = cto_assignments.associate_customer(db, tenant_id, payload.customer_id, cto_id)
    return _assignment_read(assignment)


# Customer assignments


@router.post("/assignments", response_model=AssignmentResult, tags=["cto-assignments"])
def assign_customer(
    payload: AssignmentCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    assignment = cto_assignments.assign_customer(
        db, tenant_id, payload.customer_id, payload.latitude, payload.longitude
    )
    if assignment is None:
        return AssignmentResult(assigned=False)
    return AssignmentResult(assigned=True, assignment=_assignment_read(assignment))


@router.get(
    "/assignments/{customer_id}",
    response_model=AssignmentResult,
    tags=["cto-assignments"],
)
def get_customer_assignment(
    customer_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    assignment = cto_assignments.get_assignment(db, tenant_id, customer_id)
    if assignment is None:
        return AssignmentResult(assigned=False)
    return AssignmentResult(assigned=True, assignment=_assignment_read(assignment))


@router.delete(
    "/assignments/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["cto-assignments"],
)
def release_customer(
    customer_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)
):
    cto_assignments.release_customer(db, tenant_id, customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Map location


@router.get("/map-location", response_model=MapLocationRead | None, tags=["map"])
def get_map_location(tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return map_locations.get_last(db, tenant_id)


@router.post(
    "/map-location",
    response_model=MapLocationRead,
    status_code=status.HTTP_201_CREATED,
    tags=["map"],
)
def save_map_location(
    payload: MapLocationCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return map_locations.save(db, tenant_id, payload)
