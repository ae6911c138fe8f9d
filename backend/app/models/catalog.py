from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.base import LifecycleMixin


class Rate(LifecycleMixin, Base):
    """Pricing tier applied to services, vehicles and quotes"""
    __tablename__ = "rates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, index=True)
    color = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<Rate {self.name}>"


class ServiceType(LifecycleMixin, Base):
    """Transfer type a point of interest is served by (airport, hotel, ...)"""
    __tablename__ = "service_types"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<ServiceType {self.name}>"


class POI(LifecycleMixin, Base):
    """Point of interest used as a service origin or destination"""
    __tablename__ = "pois"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False, index=True)
    service_type_id = Column(GUID, ForeignKey("service_types.id"), nullable=False, index=True)

    service_type = relationship("ServiceType", lazy="selectin")

    def __repr__(self):
        return f"<POI {self.name}>"
