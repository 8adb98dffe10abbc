import logging
from typing import Any, Dict, List, Optional, Tuple

from eventra.errors import ForbiddenError, NotFoundError, ValidationError
from eventra.models import Identity, Pagination, ScheduleEntry, ServiceCreate, ServiceListing
from eventra.policy import PROVIDER_ROLES
from eventra.services.booking_service import ACTIVE_STATUSES
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.pagination import newest_first, paginate

logger = logging.getLogger(__name__)

COLLECTION = "services"


def schedule_entry(booking: Dict[str, Any]) -> ScheduleEntry:
    """Only the fields a customer needs to pick a free slot."""
    return ScheduleEntry(
        id=booking["id"],
        status=booking.get("status"),
        event_date=booking.get("eventDate") or booking.get("date"),
        event_time=booking.get("eventTime") or booking.get("time"),
        location=booking.get("location") or None,
        guest_count=booking.get("guestCount") or None,
        budget=booking.get("budget") or None,
        event_name=booking.get("eventName") or booking.get("eventType") or None,
        created_at=booking.get("createdAt"),
    )


class ServiceCatalog:
    def __init__(self, store: DocumentStore):
        self._store = store

    def create(self, provider: Identity, request: ServiceCreate) -> ServiceListing:
        if not request.name or not request.description or not request.price or not request.category:
            raise ValidationError("Name, description, price, and category are required")
        now = utc_now_iso()
        service = {
            "name": request.name.strip(),
            "description": request.description.strip(),
            "price": float(request.price),
            "duration": request.duration or "",
            "category": request.category.strip(),
            "location": request.location or "",
            "features": request.features,
            "images": request.images,
            "providerId": provider.uid,
            "isActive": True,
            "bookings": 0,
            "rating": 0,
            "reviews": 0,
            "createdAt": now,
            "updatedAt": now,
        }
        service_id = self._store.create(COLLECTION, service)
        logger.info("Service %s created by %s", service_id, provider.uid)
        return ServiceListing.from_document({"id": service_id, **service})

    def list_services(
        self,
        *,
        provider_id: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[ServiceListing], Pagination]:
        approved = {
            user["id"]
            for user in self._store.list("users")
            if user.get("approved") is True and user.get("role") in PROVIDER_ROLES
        }
        rows = [
            service
            for service in self._store.list(COLLECTION)
            if service.get("providerId") in approved and service.get("isActive") is True
        ]
        if provider_id:
            rows = [service for service in rows if service.get("providerId") == provider_id]
        if category:
            rows = [service for service in rows if service.get("category") == category]
        paged, pagination = paginate(newest_first(rows), page, limit)
        return [ServiceListing.from_document(row) for row in paged], pagination

    def my_services(self, provider: Identity) -> List[ServiceListing]:
        rows = [service for service in self._store.list(COLLECTION) if service.get("providerId") == provider.uid]
        return [ServiceListing.from_document(row) for row in newest_first(rows)]

    def _require(self, service_id: str) -> Dict[str, Any]:
        service = self._store.get(COLLECTION, service_id)
        if not service:
            raise NotFoundError("Service does not exist")
        return service

    def get_service(self, service_id: str) -> ServiceListing:
        return ServiceListing.from_document(self._require(service_id))

    def _owned(self, provider: Identity, service_id: str, verb: str) -> Dict[str, Any]:
        service = self._require(service_id)
        if service.get("providerId") != provider.uid:
            raise ForbiddenError(f"You can only {verb} your own services")
        return service

    def set_active(self, provider: Identity, service_id: str, is_active: bool) -> ServiceListing:
        service = self._owned(provider, service_id, "update")
        update = {"isActive": is_active, "updatedAt": utc_now_iso()}
        self._store.update(COLLECTION, service_id, update)
        return ServiceListing.from_document({**service, **update})

    def delete(self, provider: Identity, service_id: str) -> Dict[str, str]:
        self._owned(provider, service_id, "delete")
        self._store.delete(COLLECTION, service_id)
        logger.info("Service %s deleted by %s", service_id, provider.uid)
        return {"id": service_id}

    def schedule(self, service_id: str) -> List[ScheduleEntry]:
        """Active bookings of the service, or of its provider, in date/time order.

        An unknown service id still reports bookings made against that id.
        """
        try:
            service = self._store.get(COLLECTION, service_id)
        except Exception:
            logger.warning("Could not fetch service %s for its schedule", service_id, exc_info=True)
            service = None
        provider_id = service.get("providerId") if service else None
        rows = [
            booking
            for booking in self._store.list("bookings")
            if booking.get("status") in ACTIVE_STATUSES
            and (booking.get("serviceId") == service_id or (provider_id and booking.get("providerId") == provider_id))
        ]
        entries = [schedule_entry(row) for row in rows]
        entries.sort(key=lambda entry: (entry.event_date or "", entry.event_time or "00:00"))
        return entries
