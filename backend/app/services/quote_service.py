"""
Quote Service - quote lifecycle, folio numbering and itinerary validation
"""

import copy
import re
from datetime import datetime, timedelta
from numbers import Number
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    QuoteNotFoundError,
    ResourceNotFoundError,
    ValidationError,
    AuthorizationError,
)
from app.core.logging_config import logger
from app.models.catalog import Rate
from app.models.quote import Quote, QuoteStatus, UPDATABLE_STATUSES, empty_service_items
from app.models.user import User, UserRole
from app.services.audit_service import audit_service, AuditAction, snapshot, diff_changes

FOLIO_PATTERN = re.compile(r"^QTE-\d{4}-\d{4}$")
TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
OPTION_SUFFIX = re.compile(r" - Opción (\d+)$")
MONEY_TOLERANCE = 0.01
FOLIO_RETRIES = 3

UPDATABLE_FIELDS = (
    "status",
    "number_of_people",
    "contact_person",
    "contact_email",
    "contact_phone",
    "notes",
    "valid_until",
)

# NOT NULL text columns: an explicit null clears them
TEXT_FIELDS = ("contact_person", "contact_email", "contact_phone", "notes")

EVENT_TYPE_MAX_LENGTH = 255


def is_valid_folio(folio: str) -> bool:
    return bool(folio and FOLIO_PATTERN.match(folio))


def next_option_event_type(event_type: Optional[str]) -> str:
    """
    'Boda' -> 'Boda - Opción 2'; 'Boda - Opción 2' -> 'Boda - Opción 3'.

    The base text is cut so the result fits the event_type column.
    """
    event_type = event_type or ""
    match = OPTION_SUFFIX.search(event_type)
    if match:
        base, number = event_type[:match.start()], int(match.group(1)) + 1
    else:
        base, number = event_type, 2
    suffix = f" - Opción {number}"
    return base[:EVENT_TYPE_MAX_LENGTH - len(suffix)] + suffix


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _round2(value: float) -> float:
    return round(value * 100) / 100


def validate_service_items(items: Dict[str, Any], iva_rate: Optional[float] = None) -> Dict[str, Any]:
    """
    Validate a quote itinerary and return the normalized payload.

    Totals are compared after rounding to cents with a one-cent tolerance.
    Raises ValidationError on the first problem found.
    """
    iva_rate = settings.QUOTE_IVA_RATE if iva_rate is None else iva_rate

    days = items.get("days", [])
    subtotal = items.get("subtotal", 0)
    iva = items.get("iva", 0)
    total = items.get("total", 0)

    if not isinstance(days, list):
        raise ValidationError("days must be a list", field="days")

    if not _is_number(subtotal) or subtotal < 0:
        raise ValidationError("subtotal must be a non-negative number", field="subtotal")
    if not _is_number(iva):
        raise ValidationError("iva must be a number", field="iva")
    if not _is_number(total):
        raise ValidationError("total must be a number", field="total")

    if abs(_round2(iva) - _round2(subtotal * iva_rate)) > MONEY_TOLERANCE:
        raise ValidationError(f"iva must be {iva_rate:.0%} of subtotal", field="iva")
    if abs(_round2(total) - _round2(subtotal + iva)) > MONEY_TOLERANCE:
        raise ValidationError("total must equal subtotal + iva", field="total")

    for index, day in enumerate(days, start=1):
        if not isinstance(day, dict):
            raise ValidationError(f"Day {index} must be an object", field="days")

        day_number = day.get("dayNumber")
        if not _is_number(day_number) or day_number < 1:
            raise ValidationError(f"Day {index} must have a valid dayNumber (>= 1)", field="dayNumber")

        title = day.get("dayTitle")
        if title is not None and not isinstance(title, str):
            raise ValidationError(f"Title of day {day_number} must be text", field="dayTitle")

        subconcepts = day.get("subconcepts")
        if not isinstance(subconcepts, list):
            raise ValidationError(f"Day {day_number} must have a subconcepts list", field="subconcepts")

        for position, sub in enumerate(subconcepts, start=1):
            _validate_subconcept(sub, position, day_number)

        day_total = day.get("dayTotal")
        if not _is_number(day_total) or day_total < 0:
            raise ValidationError(f"Total of day {day_number} must be a non-negative number", field="dayTotal")

        expected = sum(sub.get("total") or 0 for sub in subconcepts if _is_number(sub.get("total")))
        if abs(_round2(day_total) - _round2(expected)) > MONEY_TOLERANCE:
            raise ValidationError(
                f"Total of day {day_number} (${_round2(day_total)}) does not match "
                f"the sum of its subconcepts (${_round2(expected)})",
                field="dayTotal"
            )

    return {"days": days, "subtotal": subtotal, "iva": iva, "total": total}


def _validate_subconcept(sub: Any, position: int, day_number: Any) -> None:
    where = f"subconcept {position} of day {day_number}"
    if not isinstance(sub, dict):
        raise ValidationError(f"Invalid {where}", field="subconcepts")

    time_value = sub.get("time")
    if time_value and (not isinstance(time_value, str) or not TIME_PATTERN.match(time_value)):
        raise ValidationError(f"Invalid time in {where}. Use HH:MM (00:00 - 23:59)", field="time")

    for name in ("hours", "unitPrice", "total"):
        value = sub.get(name)
        if value is not None and (not _is_number(value) or value < 0):
            raise ValidationError(f"Invalid {name} in {where}", field=name)

    if "isPerPerson" in sub and not isinstance(sub["isPerPerson"], bool):
        raise ValidationError(f"isPerPerson must be a boolean in {where}", field="isPerPerson")

    if sub.get("isPerPerson") and "numberOfPeople" in sub:
        people = sub["numberOfPeople"]
        if not _is_number(people) or people < 1:
            raise ValidationError(f"numberOfPeople must be at least 1 in {where}", field="numberOfPeople")

    for name in ("vehicleCapacity", "vehicleMultiplier"):
        value = sub.get(name)
        if value is not None and (not _is_number(value) or value < 1):
            raise ValidationError(f"{name} must be at least 1 in {where}", field=name)


def serialize_quote(quote: Quote) -> Dict[str, Any]:
    client = quote.client
    created_by = quote.created_by
    rate = quote.rate
    return {
        "id": quote.id,
        "folio": quote.folio,
        "client": {
            "id": client.id,
            "full_name": client.full_name,
            "email": client.email,
        } if client else None,
        "rate": {
            "id": rate.id,
            "name": rate.name,
            "color": rate.color,
        } if rate else None,
        "created_by": {
            "id": created_by.id,
            "full_name": created_by.full_name,
            "email": created_by.email,
        } if created_by else None,
        "event_type": quote.event_type,
        "number_of_people": quote.number_of_people,
        "status": quote.status,
        "contact_person": quote.contact_person,
        "contact_email": quote.contact_email,
        "contact_phone": quote.contact_phone,
        "notes": quote.notes,
        "valid_until": quote.valid_until,
        "service_items": quote.service_items or empty_service_items(),
        "active": quote.active,
        "created_at": quote.created_at,
        "updated_at": quote.updated_at,
    }


def serialize_public_quote(quote: Quote) -> Dict[str, Any]:
    """Client-facing view: no internal ids, users or notes"""
    return {
        "folio": quote.folio,
        "event_type": quote.event_type,
        "number_of_people": quote.number_of_people,
        "status": quote.status,
        "contact_person": quote.contact_person,
        "valid_until": quote.valid_until,
        "service_items": quote.service_items or empty_service_items(),
        "created_at": quote.created_at,
    }


class QuoteService:
    """Quote operations; every write is committed with its audit entry"""

    async def generate_folio(self, db: AsyncSession, year: Optional[int] = None) -> str:
        """
        Next folio for the year: QTE-{year}-{n:04d}.

        Numbering continues after the highest sequence ever issued in the
        year, deleted quotes included, so a folio is never reused.
        """
        year = year or datetime.utcnow().year
        prefix = f"QTE-{year}-"
        result = await db.execute(select(Quote.folio).where(Quote.folio.like(f"{prefix}%")))

        highest = 0
        for (folio,) in result.all():
            suffix = folio[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:04d}"

    # ==================== Access control ====================

    async def visibility_filter(self, db: AsyncSession, user: User):
        """
        SQL condition restricting quotes to what `user` may see, or None for
        unrestricted access.

        - superadmin/admin: everything
        - department_manager: quotes created by anyone in their department
        - client: quotes created by users of their organization, or for it
        - everyone else: quotes they created
        """
        if user.role in (UserRole.SUPERADMIN, UserRole.ADMIN):
            return None

        if user.role == UserRole.DEPARTMENT_MANAGER and user.department_id:
            members = select(User.id).where(User.department_id == user.department_id)
            return or_(Quote.created_by_id.in_(members), Quote.created_by_id == user.id)

        if user.role == UserRole.CLIENT:
            organization_id = user.client_id or user.id
            members = select(User.id).where(User.client_id == organization_id)
            return or_(
                Quote.created_by_id.in_(members),
                Quote.created_by_id == user.id,
                Quote.client_id == organization_id,
            )

        return Quote.created_by_id == user.id

    async def can_access(self, db: AsyncSession, user: User, quote: Quote) -> bool:
        condition = await self.visibility_filter(db, user)
        if condition is None:
            return True
        result = await db.execute(select(Quote.id).where(Quote.id == quote.id, condition))
        return result.scalar_one_or_none() is not None

    @staticmethod
    def require_admin(user: User) -> None:
        if user.role not in (UserRole.SUPERADMIN, UserRole.ADMIN):
            raise AuthorizationError("Only administrators can modify quotes")

    # ==================== Reads ====================

    async def get(self, db: AsyncSession, quote_id: str) -> Quote:
        result = await db.execute(
            select(Quote).where(Quote.id == quote_id, Quote.exists == True)  # noqa: E712
        )
        quote = result.scalar_one_or_none()
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    async def get_for_user(self, db: AsyncSession, quote_id: str, user: User) -> Quote:
        quote = await self.get(db, quote_id)
        if not await self.can_access(db, user, quote):
            raise AuthorizationError("You do not have access to this quote")
        return quote

    async def get_public(self, db: AsyncSession, folio: str) -> Quote:
        if not is_valid_folio(folio):
            raise ValidationError("Invalid folio format", field="folio")
        result = await db.execute(
            select(Quote).where(
                Quote.folio == folio,
                Quote.exists == True,  # noqa: E712
                Quote.active == True,  # noqa: E712
            )
        )
        quote = result.scalar_one_or_none()
        if quote is None:
            raise QuoteNotFoundError(folio)
        return quote

    # ==================== Writes ====================

    async def _insert_with_folio(self, db: AsyncSession, quote: Quote) -> Quote:
        """Insert a quote, regenerating the folio if another insert took it"""
        for attempt in range(FOLIO_RETRIES):
            quote.folio = await self.generate_folio(db)
            db.add(quote)
            try:
                await db.flush()
                return quote
            except IntegrityError:
                await db.rollback()
                logger.warning(f"[Quotes] Folio {quote.folio} taken, retrying ({attempt + 1}/{FOLIO_RETRIES})")
        raise ValidationError("Could not allocate a folio, please retry")

    async def create(
        self,
        db: AsyncSession,
        data: Dict[str, Any],
        user: User,
        request: Optional[Request] = None,
    ) -> Quote:
        client_id = data.get("client_id")
        if client_id:
            client = (await db.execute(
                select(User).where(User.id == client_id, User.exists == True)  # noqa: E712
            )).scalar_one_or_none()
            if client is None:
                raise ResourceNotFoundError("Client", client_id)

        rate_id = data.get("rate_id")
        if rate_id:
            await self._require_rate(db, rate_id)

        quote = Quote(
            client_id=client_id,
            created_by_id=str(user.id),
            rate_id=rate_id,
            contact_person=data.get("contact_person") or "",
            contact_email=data.get("contact_email") or "",
            contact_phone=data.get("contact_phone") or "",
            notes=data.get("notes") or "",
            event_type=data.get("event_type") or "",
            number_of_people=data.get("number_of_people") or 1,
            status=QuoteStatus.REQUESTED.value,
            valid_until=datetime.utcnow() + timedelta(days=settings.QUOTE_VALIDITY_DAYS),
            service_items=empty_service_items(),
        )
        await self._insert_with_folio(db, quote)

        await audit_service.log(
            db, user, AuditAction.CREATE, "Quote", quote.id,
            changes={"folio": quote.folio, "status": quote.status},
            request=request,
        )
        await db.commit()
        await db.refresh(quote, attribute_names=["client", "created_by", "rate"])

        logger.info(f"[Quotes] Created {quote.folio} by {user.email}")
        return quote

    async def _require_rate(self, db: AsyncSession, rate_id: str) -> Rate:
        rate = (await db.execute(
            select(Rate).where(Rate.id == rate_id, Rate.exists == True)  # noqa: E712
        )).scalar_one_or_none()
        if rate is None:
            raise ResourceNotFoundError("Rate", rate_id)
        return rate

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in UPDATABLE_STATUSES:
            raise ValidationError(
                f"Invalid status. Allowed: {', '.join(UPDATABLE_STATUSES)}",
                field="status"
            )

    async def update(
        self,
        db: AsyncSession,
        quote_id: str,
        data: Dict[str, Any],
        user: User,
        request: Optional[Request] = None,
    ) -> Quote:
        self.require_admin(user)
        quote = await self.get(db, quote_id)

        updates = {key: value for key, value in data.items() if key in UPDATABLE_FIELDS}
        if "status" in updates:
            self._check_status(updates["status"])
        if "number_of_people" in updates and (updates["number_of_people"] or 0) < 1:
            raise ValidationError("number_of_people must be at least 1", field="number_of_people")
        for key in TEXT_FIELDS:
            if key in updates and updates[key] is None:
                updates[key] = ""

        before = snapshot(quote, updates.keys())
        for key, value in updates.items():
            setattr(quote, key, value)
        changes = diff_changes(before, updates)

        if changes:
            await audit_service.log(db, user, AuditAction.UPDATE, "Quote", quote.id, changes=changes, request=request)
        await db.commit()
        await db.refresh(quote, attribute_names=["client", "created_by", "rate"])
        return quote

    async def update_status(
        self,
        db: AsyncSession,
        quote_id: str,
        status: str,
        user: User,
        reason: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> Quote:
        self.require_admin(user)
        self._check_status(status)
        quote = await self.get(db, quote_id)

        previous = quote.status
        quote.status = status
        await audit_service.log(
            db, user, AuditAction.STATUS_CHANGE, "Quote", quote.id,
            changes={"status": {"old": previous, "new": status}},
            request=request,
            metadata={"reason": reason} if reason else None,
        )
        await db.commit()
        await db.refresh(quote, attribute_names=["client", "created_by", "rate"])
        return quote

    async def update_service_items(
        self,
        db: AsyncSession,
        quote_id: str,
        items: Dict[str, Any],
        user: User,
        request: Optional[Request] = None,
    ) -> Quote:
        quote = await self.get_for_user(db, quote_id, user)
        service_items = validate_service_items(items)

        quote.service_items = service_items
        await audit_service.log(
            db, user, AuditAction.UPDATE, "Quote", quote.id,
            changes={"service_items": {
                "days": len(service_items["days"]),
                "subtotal": service_items["subtotal"],
                "iva": service_items["iva"],
                "total": service_items["total"],
            }},
            request=request,
        )
        await db.commit()

        logger.info(f"[Quotes] Service items updated for {quote.folio}: {len(service_items['days'])} days, total {service_items['total']}")
        return quote

    async def duplicate(
        self,
        db: AsyncSession,
        quote_id: str,
        user: User,
        request: Optional[Request] = None,
    ) -> Quote:
        original = await self.get_for_user(db, quote_id, user)

        duplicate = Quote(
            client_id=original.client_id,
            created_by_id=str(user.id),
            rate_id=original.rate_id,
            contact_person=original.contact_person,
            contact_email=original.contact_email,
            contact_phone=original.contact_phone,
            notes=original.notes,
            event_type=next_option_event_type(original.event_type),
            number_of_people=original.number_of_people,
            status=QuoteStatus.REQUESTED.value,
            valid_until=datetime.utcnow() + timedelta(days=settings.QUOTE_VALIDITY_DAYS),
            service_items=copy.deepcopy(original.service_items) or empty_service_items(),
        )
        original_folio = original.folio
        await self._insert_with_folio(db, duplicate)

        await audit_service.log(
            db, user, AuditAction.DUPLICATE, "Quote", duplicate.id,
            changes={"folio": duplicate.folio},
            request=request,
            metadata={"source_quote_id": quote_id, "source_folio": original_folio},
        )
        await db.commit()
        await db.refresh(duplicate, attribute_names=["client", "created_by", "rate"])

        logger.info(f"[Quotes] Duplicated {original_folio} as {duplicate.folio}")
        return duplicate

    async def share_link(
        self,
        db: AsyncSession,
        quote_id: str,
        user: User,
        request: Optional[Request] = None,
    ) -> Dict[str, str]:
        quote = await self.get_for_user(db, quote_id, user)
        if not quote.active:
            raise ValidationError("Only active quotes can be shared")

        share_url = settings.get_share_url(quote.folio)
        await audit_service.log(
            db, user, AuditAction.SHARE, "Quote", quote.id,
            request=request,
            metadata={"share_url": share_url},
        )
        await db.commit()
        return {"share_url": share_url, "folio": quote.folio, "quote_id": quote.id}

    async def delete(
        self,
        db: AsyncSession,
        quote_id: str,
        user: User,
        request: Optional[Request] = None,
    ) -> None:
        self.require_admin(user)
        quote = await self.get(db, quote_id)
        quote.soft_delete(str(user.id))
        await audit_service.log(
            db, user, AuditAction.DELETE, "Quote", quote.id,
            changes={"folio": quote.folio},
            request=request,
        )
        await db.commit()
        logger.info(f"[Quotes] Deleted {quote.folio} by {user.email}")


quote_service = QuoteService()
