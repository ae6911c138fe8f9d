from sqlalchemy import Column, String, Text, Integer, Float, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid, JSONType
from app.models.base import LifecycleMixin


EXPERIENCE_TYPE = "Experience"
PROVIDER_TYPE = "Provider"


# Experiences bundled inside a parent experience or provider
experience_links = Table(
    "experience_links",
    Base.metadata,
    Column("parent_id", GUID, ForeignKey("experiences.id", ondelete="CASCADE"), primary_key=True),
    Column("child_id", GUID, ForeignKey("experiences.id", ondelete="CASCADE"), primary_key=True),
)


class Experience(LifecycleMixin, Base):
    """Experience or provider offered to clients"""
    __tablename__ = "experiences"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), default=EXPERIENCE_TYPE, nullable=False, index=True)
    cost = Column(Float, default=0, nullable=False)

    # Pointer to the current primary image, maintained by the image service
    main_image_id = Column(
        GUID,
        ForeignKey("experience_images.id", use_alter=True, name="fk_experiences_main_image_id", ondelete="SET NULL"),
        nullable=True
    )

    experiences = relationship(
        "Experience",
        secondary=experience_links,
        primaryjoin=lambda: Experience.id == experience_links.c.parent_id,
        secondaryjoin=lambda: Experience.id == experience_links.c.child_id,
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Experience {self.name}>"


class ExperienceImage(LifecycleMixin, Base):
    """Image of an experience stored in S3"""
    __tablename__ = "experience_images"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    experience_id = Column(GUID, ForeignKey("experiences.id"), nullable=False, index=True)
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
        return f"<ExperienceImage {self.s3_key}>"


class ProviderExperiencia(LifecycleMixin, Base):
    """Activity sold by a provider"""
    __tablename__ = "provider_experiencias"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    provider_id = Column(GUID, ForeignKey("experiences.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    price = Column(Float, default=0, nullable=False)
    min_people = Column(Integer, nullable=True)
    max_people = Column(Integer, nullable=True)
    tipo = Column(String(50), nullable=True)
    availability = Column(JSONType, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)

    provider = relationship("Experience", lazy="selectin")

    def __repr__(self):
        return f"<ProviderExperiencia {self.name}>"
