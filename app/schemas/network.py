from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import settings
from app.models.network import PortStatus

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class CtoGroupBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = None
    color: str = Field(default="#3B82F6", pattern=_HEX_COLOR)


class CtoGroupCreate(CtoGroupBase):
    pass


class CtoGroupUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    color: str | None = Field(default=None, pattern=_HEX_COLOR)

    @field_validator("name", "color")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field may be omitted but not set to null")
        return value


class CtoGroupRead(CtoGroupBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime


class CtoBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    address: str | None = Field(default=None, max_length=500)
    latitude: float
    longitude: float
    total_ports: int = Field(
        default_factory=lambda: settings.cto_default_ports, ge=1, le=1024
    )
    group_id: UUID | None = None
    notes: str | None = None


class CtoCreate(CtoBase):
    pass


class CtoUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    address: str | None = Field(default=None, max_length=500)
    latitude: float | None = None
    longitude: float | None = None
    total_ports: int | None = Field(default=None, ge=1, le=1024)
    group_id: UUID | None = None
    notes: str | None = None

    @field_validator("name", "latitude", "longitude", "total_ports")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field may be omitted but not set to null")
        return value


class CtoRead(CtoBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    used_ports: int
    free_ports: int
    is_active: bool
    group: CtoGroupRead | None = None
    created_at: datetime
    updated_at: datetime


class PortStatusRead(BaseModel):
    port_number: int
    status: PortStatus
    customer_id: UUID | None = None


class PortReservationCreate(BaseModel):
    customer_id: UUID | None = None


class PortReservationRead(BaseModel):
    cto_id: UUID
    port_number: int
    customer_id: UUID | None = None


class CtoCandidateRead(BaseModel):
    cto: CtoRead
    distance_m: float
    distance_display: str
    has_free_capacity: bool


class NearestCtoRead(BaseModel):
    found: bool
    cto: CtoRead | None = None
    distance_m: float | None = None
    distance_display: str | None = None


class CustomerCoordinates(BaseModel):
    latitude: float
    longitude: float


class CtoCandidateList(BaseModel):
    options: list[CtoCandidateRead]
    customer_coords: CustomerCoordinates


class AssignmentCreate(BaseModel):
    customer_id: UUID
    latitude: float
    longitude: float


class ManualAssignmentCreate(BaseModel):
    customer_id: UUID


class AssignmentRead(BaseModel):
    customer_id: UUID
    cto: CtoRead
    port_number: int
    distance_m: float | None = None


class AssignmentResult(BaseModel):
    assigned: bool
    assignment: AssignmentRead | None = None


class MapLocationCreate(BaseModel):
    latitude: float
    longitude: float
    zoom: int = Field(default=13, ge=0, le=22)


class MapLocationRead(MapLocationCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
