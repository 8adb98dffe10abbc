import logging
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from eventra.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from eventra.models import Booking, BookNowRequest, Identity, Pagination
from eventra.policy import CUSTOMER
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.locks import KeyedLock
from eventra.services.notification_service import NotificationService
from eventra.services.pagination import newest_first, paginate

logger = logging.getLogger(__name__)

COLLECTION = "bookings"

ACTIVE_STATUSES = {"pending", "confirmed", "in_progress"}
DECISION_STATUSES = {"accepted": "confirmed", "declined": "declined"}
UPDATE_STATUSES = ("confirmed", "in_progress", "completed", "cancelled")


def normalize_time(value: Optional[str]) -> str:
    if value and len(value) >= 4:
        return value[:5]
    return ""


def find_conflict(
    bookings: Iterable[Dict[str, Any]],
    *,
    service_id: Optional[str],
    provider_id: Optional[str],
    event_date: Optional[str],
    event_time: Optional[str],
    exclude_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Returns the first active booking occupying the same slot, if any.

    A slot is shared when either the service or the provider matches, the dates
    are equal and the normalized times are equal. Two bookings without a time
    collide on the whole day. An empty service or provider id never matches.
    """
    desired_time = normalize_time(event_time)
    for booking in bookings:
        if booking.get("status") not in ACTIVE_STATUSES or (exclude_id and booking.get("id") == exclude_id):
            continue
        same_service = bool(service_id) and booking.get("serviceId") == service_id
        same_provider = bool(provider_id) and booking.get("providerId") == provider_id
        if not same_service and not same_provider:
            continue
        booking_date = booking.get("eventDate") or booking.get("date")
        if not booking_date or booking_date != event_date:
            continue
        booking_time = normalize_time(booking.get("eventTime") or booking.get("time") or "")
        if booking_time == desired_time:
            return booking
    return None


def slot_lock_keys(service_id: Optional[str], provider_id: Optional[str], event_date: Optional[str]) -> List[str]:
    keys = []
    if service_id:
        keys.append(f"booking:service:{service_id}:{event_date}")
    if provider_id:
        keys.append(f"booking:provider:{provider_id}:{event_date}")
    return keys


class BookingService:
    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService,
        locks: KeyedLock,
        *,
        fail_open: bool = True,
    ):
        self._store = store
        self._notifications = notifications
        self._locks = locks
        self._fail_open = fail_open

    def _lookup(self, collection: str, doc_id: str, what: str) -> Optional[Dict[str, Any]]:
        try:
            return self._store.get(collection, doc_id)
        except Exception as exc:
            if not self._fail_open:
                raise InternalError(f"Could not fetch {what} details: {exc}") from exc
            logger.warning("Could not fetch %s details for %s: %s", what, doc_id, exc)
            return None

    def _enrichment(self, service_id: str, provider_id: str) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        service = self._lookup("services", service_id, "service")
        if service:
            details.update(
                serviceName=service.get("name"),
                serviceDescription=service.get("description"),
                serviceCategory=service.get("category"),
            )
        provider = self._lookup("users", provider_id, "provider")
        if provider:
            details.update(providerName=provider.get("name"), providerRole=provider.get("role"))
        return details

    def _assert_slot_free(
        self,
        service_id: Optional[str],
        provider_id: Optional[str],
        event_date: Optional[str],
        event_time: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        try:
            existing = self._store.list(COLLECTION)
        except Exception as exc:
            if not self._fail_open:
                raise InternalError(f"Could not validate booking availability: {exc}") from exc
            logger.warning("Collision validation failed open for %s/%s on %s: %s", service_id, provider_id, event_date, exc)
            return
        conflict = find_conflict(
            existing,
            service_id=service_id,
            provider_id=provider_id,
            event_date=event_date,
            event_time=event_time,
            exclude_id=exclude_id,
        )
        if conflict:
            logger.info("Booking collision with %s for %s/%s on %s", conflict.get("id"), service_id, provider_id, event_date)
            raise ConflictError("Selected date/time is already booked or pending for this service/provider.")

    @contextmanager
    def reserve_slot(
        self,
        *,
        service_id: Optional[str],
        provider_id: Optional[str],
        event_date: Optional[str],
        event_time: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> Iterator[None]:
        """Holds the slot locks and raises ConflictError if an active booking already owns the slot.

        The caller writes its booking inside the block so the check and the write
        happen under the same locks.
        """
        with self._locks.hold_many(slot_lock_keys(service_id, provider_id, event_date)):
            self._assert_slot_free(service_id, provider_id, event_date, event_time, exclude_id)
            yield

    def create_direct_booking(self, customer: Identity, request: BookNowRequest) -> Booking:
        if not request.service_id or not request.provider_id or not request.event_date or not request.location or not request.budget:
            raise ValidationError("Service ID, provider ID, event date, location, and budget are required")

        service_id = request.service_id
        provider_id = request.provider_id
        event_date = request.event_date
        details = self._enrichment(service_id, provider_id)

        with self.reserve_slot(
            service_id=service_id, provider_id=provider_id, event_date=event_date, event_time=request.event_time
        ):
            now = utc_now_iso()
            booking = {
                "customerId": customer.uid,
                "customerName": customer.name,
                "providerId": provider_id,
                "serviceId": service_id,
                "eventName": request.event_name or details.get("serviceName") or "Event",
                "eventType": request.event_type or details.get("serviceCategory") or "Other",
                "eventDate": event_date,
                "eventTime": request.event_time or None,
                "location": request.location,
                "budget": float(request.budget),
                "guestCount": request.guest_count or 0,
                "requirements": request.requirements or "",
                "price": float(request.budget),
                "status": "pending",
                **details,
                "createdAt": now,
                "updatedAt": now,
            }
            booking_id = self._store.create(COLLECTION, booking)

        logger.info("Direct booking %s created by %s for provider %s", booking_id, customer.uid, provider_id)
        self._notifications.notify(
            provider_id,
            type="new_booking_request",
            title="New Booking Request!",
            message=f"{customer.name} wants to book your service for {event_date}. Please accept or decline.",
            data={"bookingId": booking_id, "serviceId": service_id, "customerId": customer.uid},
        )
        return Booking.from_document({"id": booking_id, **booking})

    def _require(self, booking_id: str) -> Dict[str, Any]:
        booking = self._store.get(COLLECTION, booking_id)
        if not booking:
            raise NotFoundError("The requested booking does not exist")
        return booking

    def set_booking_status(self, actor: Identity, booking_id: str, status: Optional[str], notes: Optional[str] = None) -> Dict[str, str]:
        """Provider accepts or declines a pending booking."""
        if status not in DECISION_STATUSES:
            raise ValidationError('Status must be either "accepted" or "declined"')
        booking = self._require(booking_id)
        if booking.get("providerId") != actor.uid:
            raise ForbiddenError("You can only manage your own bookings")
        if booking.get("status") != "pending":
            raise InvalidStateError("Only pending bookings can be accepted or declined")

        update: Dict[str, Any] = {"status": DECISION_STATUSES[status], "updatedAt": utc_now_iso()}
        if notes:
            update["providerNotes"] = notes
        self._store.update(COLLECTION, booking_id, update)

        accepted = status == "accepted"
        event_name = booking.get("eventName", "your event")
        self._notifications.notify(
            booking.get("customerId"),
            type="booking_accepted" if accepted else "booking_declined",
            title="Booking Confirmed!" if accepted else "Booking Declined",
            message=(
                f"Your booking for {event_name} has been confirmed by the provider."
                if accepted
                else f"Your booking for {event_name} has been declined by the provider."
            ),
            data={"bookingId": booking_id, "providerId": actor.uid},
        )
        return {"bookingId": booking_id, "status": update["status"]}

    def update_booking_status(self, actor: Identity, booking_id: str, status: Optional[str], notes: Optional[str] = None) -> Booking:
        if status not in UPDATE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(UPDATE_STATUSES)}")
        booking = self._require(booking_id)
        owner_field = "customerId" if actor.role == CUSTOMER else "providerId"
        if booking.get(owner_field) != actor.uid:
            raise ForbiddenError("You can only update your own bookings")

        # Reactivating a cancelled or declined booking takes its slot back, so it must still be free.
        guard = nullcontext()
        if status in ACTIVE_STATUSES and booking.get("status") not in ACTIVE_STATUSES:
            guard = self.reserve_slot(
                service_id=booking.get("serviceId"),
                provider_id=booking.get("providerId"),
                event_date=booking.get("eventDate") or booking.get("date"),
                event_time=booking.get("eventTime") or booking.get("time"),
                exclude_id=booking_id,
            )
        with guard:
            update: Dict[str, Any] = {"status": status, "updatedAt": utc_now_iso()}
            if notes:
                update["notes"] = notes
            self._store.update(COLLECTION, booking_id, update)

        recipient = booking.get("providerId") if actor.role == CUSTOMER else booking.get("customerId")
        self._notifications.notify(
            recipient,
            type="booking_status_update",
            title="Booking Status Updated",
            message=f"Booking status changed to {status}",
            data={"bookingId": booking_id, "status": status},
        )
        return Booking.from_document({**booking, **update})

    def get_booking(self, actor: Identity, booking_id: str) -> Booking:
        booking = self._require(booking_id)
        if actor.uid not in {booking.get("customerId"), booking.get("providerId")}:
            raise ForbiddenError("You can only view your own bookings")
        return Booking.from_document(booking)

    def list_bookings(
        self, actor: Identity, *, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[Booking], Pagination]:
        owner_field = "customerId" if actor.role == CUSTOMER else "providerId"
        rows = [
            booking
            for booking in self._store.list(COLLECTION)
            if booking.get(owner_field) == actor.uid and (not status or booking.get("status") == status)
        ]
        paged, pagination = paginate(newest_first(rows), page, limit)
        return [Booking.from_document(row) for row in paged], pagination
