from sqlalchemy import Column, String, Text, Integer, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import re

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.base import LifecycleMixin


class MaintenanceStatus(str, enum.Enum):
    """Vehicle maintenance states"""
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    OUT_OF_SERVICE = "out_of_service"


def generate_type_code(name: str) -> str:
    """Derive a vehicle type code: lowercase, spaces to '_', only [a-z0-9_-]"""
    code = name.strip().lower().replace(" ", "_")
    return re.sub(r"[^a-z0-9_-]", "", code)


class VehicleType(LifecycleMixin, Base):
    """Vehicle category (sedan, van, sprinter...)"""
    __tablename__ = "vehicle_types"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, index=True)
    code = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    icon = Column(String(50), nullable=True)
    default_capacity = Column(Integer, default=4, nullable=False)
    trunk_capacity = Column(Integer, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<VehicleType {self.code}>"


class Vehicle(LifecycleMixin, Base):
    """Fleet vehicle"""
    __tablename__ = "vehicles"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    license_plate = Column(String(20), nullable=False, index=True)
    vin = Column(String(17), nullable=True, index=True)
    vehicle_type_id = Column(GUID, ForeignKey("vehicle_types.id"), nullable=False, index=True)
    rate_id = Column(GUID, ForeignKey("rates.id"), nullable=True)
    capacity = Column(Integer, nullable=False)
    color = Column(String(50), nullable=True)
    maintenance_status = Column(String(20), default=MaintenanceStatus.OPERATIONAL.value, nullable=False)
    insurance_expiry = Column(Date, nullable=True)

    # Pointer to the current primary image, maintained by the image service
    main_image_id = Column(
        GUID,
        ForeignKey("vehicle_images.id", use_alter=True, name="fk_vehicles_main_image_id", ondelete="SET NULL"),
        nullable=True
    )

    vehicle_type = relationship("VehicleType", lazy="selectin")
    rate = relationship("Rate", lazy="selectin")

    @property
    def is_available(self) -> bool:
        return bool(self.active) and self.maintenance_status == MaintenanceStatus.OPERATIONAL.value

    def __repr__(self):
        return f"<Vehicle {self.license_plate}>"


class VehicleImage(LifecycleMixin, Base):
    """Image of a vehicle stored in S3"""
    __tablename__ = "vehicle_images"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    vehicle_id = Column(GUID, ForeignKey("vehicles.id"), nullable=False, index=True)
    s3_key = Column(String(512), nullable=False)
    s3_bucket = Column(String(255), nullable=False)
    s3_region = Column(String(50), nullable=True)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    uploaded_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<VehicleImage {self.s3_key}>"
