from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class QuoteCreate(BaseModel):
    client_id: Optional[str] = None
    rate_id: Optional[str] = None
    contact_person: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=255)
    number_of_people: Optional[int] = Field(None, ge=1)


class QuoteUpdate(BaseModel):
    status: Optional[str] = None
    number_of_people: Optional[int] = Field(None, ge=1)
    contact_person: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    valid_until: Optional[datetime] = None


class QuoteStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = Field(None, max_length=500)


class ServiceItemsUpdate(BaseModel):
    """Day-by-day itinerary; content is checked by the quote service"""
    days: List[Dict[str, Any]] = []
    subtotal: Any = 0
    iva: Any = 0
    total: Any = 0


class ShareLinkResponse(BaseModel):
    share_url: str
    folio: str
    quote_id: str
