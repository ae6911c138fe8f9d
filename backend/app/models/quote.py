from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, JSONType
from app.models.base import LifecycleMixin


class QuoteStatus(str, enum.Enum):
    """Quote workflow states"""
    REQUESTED = "requested"
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Statuses an admin may move a quote to; "requested" is only set on creation
UPDATABLE_STATUSES = [
    QuoteStatus.DRAFT.value,
    QuoteStatus.SENT.value,
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.REJECTED.value,
]


def empty_service_items() -> dict:
    return {"days": [], "subtotal": 0, "iva": 0, "total": 0}


class Quote(LifecycleMixin, Base):
    """Client quote with a day-by-day itinerary of priced service items"""
    __tablename__ = "quotes"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    folio = Column(String(20), unique=True, nullable=False, index=True)

    client_id = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)
    created_by_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    rate_id = Column(GUID, ForeignKey("rates.id"), nullable=True)

    contact_person = Column(String(200), default="", nullable=False)
    contact_email = Column(String(255), default="", nullable=False)
    contact_phone = Column(String(50), default="", nullable=False)
    notes = Column(Text, default="", nullable=False)
    event_type = Column(String(255), default="", nullable=False)
    number_of_people = Column(Integer, default=1, nullable=False)

    status = Column(String(20), default=QuoteStatus.REQUESTED.value, nullable=False, index=True)
    valid_until = Column(DateTime, nullable=True)
    service_items = Column(JSONType, default=empty_service_items, nullable=False)

    client = relationship("User", foreign_keys=[client_id], lazy="selectin")
    created_by = relationship("User", foreign_keys=[created_by_id], lazy="selectin")
    rate = relationship("Rate", lazy="selectin")

    def __repr__(self):
        return f"<Quote {self.folio}>"
