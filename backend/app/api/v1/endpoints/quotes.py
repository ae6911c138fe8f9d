"""
Quote API

DataTables listing with role-based visibility, CRUD restricted to
administrators for edits, itinerary (service items) updates, duplication and
share links.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.database import get_db
from app.core.rate_limiter import read_rate_limit, write_rate_limit
from app.models.catalog import Rate
from app.models.quote import Quote
from app.models.user import User, UserRole
from app.modules.auth.dependencies import require_role_level
from app.schemas.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteStatusUpdate,
    ServiceItemsUpdate,
    ShareLinkResponse,
)
from app.services.quote_service import quote_service, serialize_quote
from app.utils.pagination import parse_datatables_params, datatables_query, datatables_response

router = APIRouter()

# Department managers, clients and administrators work with quotes
get_quote_user = require_role_level(UserRole.DEPARTMENT_MANAGER.level)


@router.get("")
@read_rate_limit()
async def list_quotes(
    request: Request,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """
    DataTables listing of the quotes the caller may see.

    Sortable columns: 0 client, 1 rate, 2 event type, 3 number of people,
    4 created by, 5 status, 6 created at. Search matches folio or contact.
    """
    params = parse_datatables_params(request)
    client = aliased(User)
    creator = aliased(User)

    base = (
        select(Quote)
        .outerjoin(client, Quote.client_id == client.id)
        .outerjoin(Rate, Quote.rate_id == Rate.id)
        .outerjoin(creator, Quote.created_by_id == creator.id)
        .where(Quote.exists == True)  # noqa: E712
    )
    visibility = await quote_service.visibility_filter(db, current_user)
    if visibility is not None:
        base = base.where(visibility)

    query = base
    if params.search:
        term = f"%{params.search}%"
        query = query.where(or_(Quote.folio.ilike(term), Quote.contact_person.ilike(term)))
    if params.filters.get("status"):
        query = query.where(Quote.status == params.filters["status"])

    listing = await datatables_query(
        db, query, params, base,
        sortable_columns=[
            client.email,
            Rate.name,
            Quote.event_type,
            Quote.number_of_people,
            creator.email,
            Quote.status,
            Quote.created_at,
        ],
        default_order=Quote.created_at.desc(),
    )
    return datatables_response(params, listing, [serialize_quote(q) for q in listing["items"]])


@router.post("", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def create_quote(
    request: Request,
    quote_data: QuoteCreate,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a quote in `requested` status with a fresh folio"""
    quote = await quote_service.create(db, quote_data.model_dump(), current_user, request)
    return {"success": True, "data": serialize_quote(quote), "message": "Quote created"}


@router.get("/{quote_id}")
@read_rate_limit()
async def get_quote(
    request: Request,
    quote_id: str,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    quote = await quote_service.get_for_user(db, quote_id, current_user)
    return {"success": True, "data": serialize_quote(quote)}


@router.put("/{quote_id}")
@write_rate_limit()
async def update_quote(
    request: Request,
    quote_id: str,
    quote_data: QuoteUpdate,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Update editable quote fields (superadmin/admin only)"""
    quote = await quote_service.update(
        db, quote_id, quote_data.model_dump(exclude_unset=True), current_user, request
    )
    return {"success": True, "data": serialize_quote(quote), "message": "Quote updated"}


@router.patch("/{quote_id}/status")
@write_rate_limit()
async def update_quote_status(
    request: Request,
    quote_id: str,
    status_data: QuoteStatusUpdate,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Move a quote to draft, sent, accepted or rejected (superadmin/admin only)"""
    quote = await quote_service.update_status(
        db, quote_id, status_data.status, current_user, status_data.reason, request
    )
    return {"success": True, "data": serialize_quote(quote), "message": "Quote status updated"}


@router.put("/{quote_id}/service-items")
@write_rate_limit()
async def update_service_items(
    request: Request,
    quote_id: str,
    items: ServiceItemsUpdate,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Replace the quote itinerary after validating its totals"""
    quote = await quote_service.update_service_items(db, quote_id, items.model_dump(), current_user, request)
    return {
        "success": True,
        "data": {"id": quote.id, "folio": quote.folio, "service_items": quote.service_items},
        "message": "Service items updated",
    }


@router.post("/{quote_id}/duplicate", status_code=status.HTTP_201_CREATED)
@write_rate_limit()
async def duplicate_quote(
    request: Request,
    quote_id: str,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    duplicate = await quote_service.duplicate(db, quote_id, current_user, request)
    return {"success": True, "data": serialize_quote(duplicate), "message": "Quote duplicated"}


@router.post("/{quote_id}/share-link", response_model=ShareLinkResponse)
@write_rate_limit()
async def generate_share_link(
    request: Request,
    quote_id: str,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Public link to the client-facing quote page"""
    return await quote_service.share_link(db, quote_id, current_user, request)


@router.delete("/{quote_id}")
@write_rate_limit()
async def delete_quote(
    request: Request,
    quote_id: str,
    current_user: User = Depends(get_quote_user),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete (superadmin/admin only)"""
    await quote_service.delete(db, quote_id, current_user, request)
    return {"success": True, "message": "Quote deleted"}
