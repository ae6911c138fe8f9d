"""Request bodies for the catalog endpoints (rates, POIs, fleet, services, experiences)"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date


# ==================== Rates & service types ====================

class RateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=20)


class ServiceTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


# ==================== POIs ====================

class POICreate(BaseModel):
    name: str
    service_type_id: str


class POIUpdate(BaseModel):
    name: Optional[str] = None
    service_type_id: Optional[str] = None


# ==================== Vehicle types ====================

class VehicleTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)
    default_capacity: int = Field(4, ge=1, le=100)
    trunk_capacity: Optional[int] = Field(None, ge=0)
    sort_order: int = 0


class VehicleTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)
    default_capacity: Optional[int] = Field(None, ge=1, le=100)
    trunk_capacity: Optional[int] = Field(None, ge=0)
    sort_order: Optional[int] = None


# ==================== Vehicles ====================

class VehicleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=2100)
    license_plate: str = Field(..., min_length=1, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    vehicle_type_id: str
    rate_id: Optional[str] = None
    capacity: int = Field(..., ge=1, le=100)
    color: Optional[str] = Field(None, max_length=50)
    maintenance_status: Optional[str] = None
    insurance_expiry: Optional[date] = None


class VehicleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    vehicle_type_id: Optional[str] = None
    rate_id: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, le=100)
    color: Optional[str] = Field(None, max_length=50)
    maintenance_status: Optional[str] = None
    insurance_expiry: Optional[date] = None


# ==================== Services ====================

class ServiceCreate(BaseModel):
    origin_poi_id: Optional[str] = None
    destination_poi_id: str
    vehicle_type_id: str
    rate_id: str
    price: float
    note: Optional[str] = None


class ServiceUpdate(BaseModel):
    origin_poi_id: Optional[str] = None
    destination_poi_id: Optional[str] = None
    vehicle_type_id: Optional[str] = None
    rate_id: Optional[str] = None
    price: Optional[float] = None
    note: Optional[str] = None


# ==================== Experiences & providers ====================

class ExperienceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: str = "Experience"
    cost: float = Field(0, ge=0)
    experience_ids: List[str] = []


class ExperienceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[str] = None
    cost: Optional[float] = Field(None, ge=0)
    experience_ids: Optional[List[str]] = None


class ProviderExperienciaCreate(BaseModel):
    name: str
    description: str
    duration: Optional[int] = Field(None, ge=0)
    price: float = Field(0, ge=0)
    min_people: Optional[int] = Field(None, ge=1)
    max_people: Optional[int] = Field(None, ge=1)
    tipo: Optional[str] = Field(None, max_length=50)
    availability: Optional[Dict[str, Any]] = None


class ProviderExperienciaUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    min_people: Optional[int] = Field(None, ge=1)
    max_people: Optional[int] = Field(None, ge=1)
    tipo: Optional[str] = Field(None, max_length=50)
    availability: Optional[Dict[str, Any]] = None
    active: Optional[bool] = None


class ReorderItem(BaseModel):
    id: str
    order: int = Field(..., ge=0)


class ProviderExperienciaReorder(BaseModel):
    experiencias: List[ReorderItem]
