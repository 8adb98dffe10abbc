from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import Booking, BookingStatusRequest, BookNowRequest, DataEnvelope, Identity, PageEnvelope
from eventra.policy import authorize_identity
from eventra.routers.common import PageParams, envelope, page_envelope, page_params
from eventra.services.booking_service import DECISION_STATUSES
from eventra.services.container import Services

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/book-now", response_model=DataEnvelope[Booking], status_code=201)
def book_now(
    payload: BookNowRequest,
    customer: Identity = Depends(require_action("booking.create")),
    services: Services = Depends(get_services),
):
    booking = services.bookings.create_direct_booking(customer, payload)
    return envelope("Booking request sent successfully. Waiting for provider confirmation.", booking)


@router.get("", response_model=PageEnvelope[Booking])
def list_bookings(
    status: Optional[str] = Query(default=None),
    paging: PageParams = Depends(page_params),
    actor: Identity = Depends(require_action("booking.list")),
    services: Services = Depends(get_services),
):
    bookings, pagination = services.bookings.list_bookings(actor, status=status, page=paging.page, limit=paging.limit)
    return page_envelope("Bookings retrieved successfully", bookings, pagination)


@router.get("/{booking_id}", response_model=DataEnvelope[Booking])
def get_booking(
    booking_id: str,
    actor: Identity = Depends(require_action("booking.read")),
    services: Services = Depends(get_services),
):
    return envelope("Booking retrieved successfully", services.bookings.get_booking(actor, booking_id))


@router.patch("/{booking_id}/status")
def update_booking_status(
    booking_id: str,
    payload: BookingStatusRequest,
    actor: Identity = Depends(require_action("booking.update_status")),
    services: Services = Depends(get_services),
):
    if payload.status in DECISION_STATUSES:
        authorize_identity(actor.role, actor.approved, "booking.decide")
        result = services.bookings.set_booking_status(actor, booking_id, payload.status, payload.notes)
        return envelope(f"Booking {payload.status} successfully", result)
    booking = services.bookings.update_booking_status(actor, booking_id, payload.status, payload.notes)
    return envelope("Booking status updated successfully", booking)
