from sqlalchemy import Column, String, Float, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.base import LifecycleMixin


class Service(LifecycleMixin, Base):
    """Transfer route priced per vehicle type and rate"""
    __tablename__ = "services"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    origin_poi_id = Column(GUID, ForeignKey("pois.id"), nullable=True, index=True)
    destination_poi_id = Column(GUID, ForeignKey("pois.id"), nullable=False, index=True)
    vehicle_type_id = Column(GUID, ForeignKey("vehicle_types.id"), nullable=False, index=True)
    rate_id = Column(GUID, ForeignKey("rates.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    note = Column(String(500), nullable=True)

    origin_poi = relationship("POI", foreign_keys=[origin_poi_id], lazy="selectin")
    destination_poi = relationship("POI", foreign_keys=[destination_poi_id], lazy="selectin")
    vehicle_type = relationship("VehicleType", lazy="selectin")
    rate = relationship("Rate", lazy="selectin")

    def __repr__(self):
        return f"<Service {self.origin_poi_id} -> {self.destination_poi_id}>"
