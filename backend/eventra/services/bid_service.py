import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from eventra.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from eventra.models import (
    Bid,
    BidRequest,
    BidRequestCreate,
    BidRequestSummary,
    BidSubmitRequest,
    Identity,
    Pagination,
    ProviderBidRequest,
)
from eventra.services.booking_service import BookingService
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.job_postings import JobPostingService
from eventra.services.locks import KeyedLock
from eventra.services.matching import ProviderMatcher
from eventra.services.notification_service import NotificationService
from eventra.services.pagination import newest_first, paginate

logger = logging.getLogger(__name__)

COLLECTION = "bidRequests"
BOOKINGS = "bookings"
BID_ACTIONS = {"accept", "reject"}


def _bids(bid_request: Dict[str, Any]) -> List[Dict[str, Any]]:
    # The realtime database drops empty lists, so a request may come back without "bids".
    return [dict(bid) for bid in (bid_request.get("bids") or []) if isinstance(bid, dict)]


def _with_bids(bid_request: Dict[str, Any]) -> Dict[str, Any]:
    return {**bid_request, "bids": _bids(bid_request)}


def booking_from_award(bid_request: Dict[str, Any], bid: Dict[str, Any], request_id: str) -> Dict[str, Any]:
    now = utc_now_iso()
    return {
        "customerId": bid_request.get("customerId"),
        "providerId": bid.get("providerId"),
        "bidRequestId": request_id,
        "bidId": bid.get("bidId"),
        "eventName": bid_request.get("eventName") or "",
        "eventType": bid_request.get("eventType") or "",
        "eventDate": bid_request.get("eventDate"),
        "location": bid_request.get("location") or "",
        "budget": bid_request.get("budget"),
        "guestCount": bid_request.get("guestCount") or 0,
        "requirements": bid_request.get("requirements") or "",
        "price": bid.get("price"),
        "status": "confirmed",
        "createdAt": now,
        "updatedAt": now,
    }


class BidService:
    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService,
        matcher: ProviderMatcher,
        job_postings: JobPostingService,
        locks: KeyedLock,
        bookings: BookingService,
    ):
        self._store = store
        self._notifications = notifications
        self._matcher = matcher
        self._job_postings = job_postings
        self._locks = locks
        self._bookings = bookings

    def _require(self, request_id: str) -> Dict[str, Any]:
        bid_request = self._store.get(COLLECTION, request_id)
        if not bid_request:
            raise NotFoundError("The requested bid does not exist")
        return bid_request

    def create_bid_request(self, customer: Identity, request: BidRequestCreate) -> BidRequest:
        if not request.event_name or not request.event_type or not request.event_date or not request.location:
            raise ValidationError("Event name, type, date, and location are required")

        now = utc_now_iso()
        bid_request = {
            "customerId": customer.uid,
            "customerName": customer.name,
            "eventName": request.event_name,
            "eventType": request.event_type,
            "eventDate": request.event_date,
            "location": request.location,
            "budget": float(request.budget) if request.budget else None,
            "guestCount": request.guest_count or 0,
            "requirements": request.requirements or "",
            "servicesNeeded": request.services_needed,
            "preferredCategories": request.preferred_categories,
            "needWholeTeam": request.need_whole_team,
            "status": "open",
            "bids": [],
            "createdAt": now,
            "updatedAt": now,
        }
        request_id = self._store.create(COLLECTION, bid_request)
        logger.info("Bid request %s created by %s", request_id, customer.uid)

        self._matcher.notify_relevant_providers(bid_request, request_id)
        if not request.need_whole_team:
            try:
                self._job_postings.ensure_for_bid_request(bid_request, request_id)
            except Exception:
                logger.exception("Failed to create freelancer job posting for bid request %s", request_id)

        return BidRequest.from_document({"id": request_id, **bid_request})

    def submit_bid(self, provider: Identity, request_id: str, request: BidSubmitRequest) -> Bid:
        if not request.price or not request.description:
            raise ValidationError("Price and description are required")

        with self._locks.hold(f"bid:{request_id}"):
            bid_request = self._require(request_id)
            if bid_request.get("status") != "open":
                raise InvalidStateError("This bid request is no longer accepting bids")
            bids = _bids(bid_request)
            if any(bid.get("providerId") == provider.uid for bid in bids):
                raise ConflictError("You have already submitted a bid for this request", status_code=400)

            now = utc_now_iso()
            bid = {
                "bidId": f"{provider.uid}-{int(time.time() * 1000)}",
                "providerId": provider.uid,
                "providerName": provider.name,
                "providerRole": provider.role,
                "price": float(request.price),
                "description": request.description,
                "estimatedTime": request.estimated_time or "",
                "additionalServices": request.additional_services,
                "status": "pending",
                "submittedAt": now,
            }
            self._store.update(COLLECTION, request_id, {"bids": [*bids, bid], "updatedAt": now})

        self._notifications.notify(
            bid_request.get("customerId"),
            type="new_bid",
            title="New Bid Received",
            message=f"{provider.name} submitted a bid for your {bid_request.get('eventType')} event",
            data={"bidRequestId": request_id, "bidId": bid["bidId"], "providerId": provider.uid},
        )
        return Bid.from_document(bid)

    def decide_bid(self, customer: Identity, request_id: str, bid_id: str, action: Optional[str]) -> Bid:
        if action not in BID_ACTIONS:
            raise ValidationError('Action must be either "accept" or "reject"')

        with self._locks.hold(f"bid:{request_id}"):
            bid_request = self._require(request_id)
            if bid_request.get("customerId") != customer.uid:
                raise ForbiddenError("You can only manage your own bid requests")
            if bid_request.get("status") != "open":
                raise InvalidStateError("Bids can only be decided while the request is open")

            bids = _bids(bid_request)
            index = next(
                (i for i, bid in enumerate(bids) if bid.get("bidId") == bid_id or bid.get("providerId") == bid_id),
                None,
            )
            if index is None:
                raise NotFoundError("The specified bid does not exist")
            if bids[index].get("status") != "pending":
                raise InvalidStateError("Only pending bids can be accepted or rejected")

            now = utc_now_iso()
            target = bids[index]
            target.update(status="accepted" if action == "accept" else "rejected", updatedAt=now)

            if action == "accept":
                for i, bid in enumerate(bids):
                    if i != index and bid.get("status") == "pending":
                        bid.update(status="rejected", updatedAt=now)
                booking_id = self._award(bid_request, request_id, bids, target, now)
            else:
                self._store.update(COLLECTION, request_id, {"bids": bids, "updatedAt": now})
                booking_id = None

        if action == "accept":
            self._notifications.notify(
                target.get("providerId"),
                type="bid_accepted",
                title="Bid Accepted!",
                message=f"Your bid for {bid_request.get('eventType')} event has been accepted",
                data={"bookingId": booking_id, "bidRequestId": request_id, "bidId": target.get("bidId")},
            )
        else:
            self._notifications.notify(
                target.get("providerId"),
                type="bid_rejected",
                title="Bid Rejected",
                message=f"Your bid for {bid_request.get('eventType')} event was not selected",
                data={"bidRequestId": request_id, "bidId": target.get("bidId")},
            )
        return Bid.from_document(target)

    def _award(
        self,
        bid_request: Dict[str, Any],
        request_id: str,
        bids: List[Dict[str, Any]],
        accepted: Dict[str, Any],
        now: str,
    ) -> str:
        """Booking first, then the request; a failed request write deletes the booking again.

        The accepted provider's day must be free: an award is refused with a
        conflict before anything is written.
        """
        booking = booking_from_award(bid_request, accepted, request_id)
        with self._bookings.reserve_slot(
            service_id=None,
            provider_id=booking["providerId"],
            event_date=booking["eventDate"],
            event_time=None,
        ):
            booking_id = self._store.create(BOOKINGS, booking)
        logger.info("bid_accept step=booking_created request=%s booking=%s", request_id, booking_id)
        try:
            self._store.update(COLLECTION, request_id, {"bids": bids, "status": "awarded", "updatedAt": now})
        except Exception:
            logger.exception("bid_accept step=request_update_failed request=%s; compensating", request_id)
            try:
                self._store.delete(BOOKINGS, booking_id)
                logger.info("bid_accept step=booking_rolled_back request=%s booking=%s", request_id, booking_id)
            except Exception:
                logger.exception(
                    "bid_accept step=rollback_failed request=%s booking=%s; left for reconciliation",
                    request_id,
                    booking_id,
                )
            raise
        logger.info("bid_accept step=request_awarded request=%s", request_id)
        return booking_id

    def delete_bid_request(self, customer: Identity, request_id: str) -> Dict[str, str]:
        with self._locks.hold(f"bid:{request_id}"):
            bid_request = self._require(request_id)
            if bid_request.get("customerId") != customer.uid:
                raise ForbiddenError("You can only delete your own bid requests")
            bids = _bids(bid_request)
            if any(bid.get("status") == "accepted" for bid in bids):
                raise InvalidStateError(
                    "Cannot delete a bid request with accepted bids. Please contact support if you need to cancel."
                )
            self._store.delete(COLLECTION, request_id)
        logger.info("Bid request %s deleted by %s", request_id, customer.uid)

        self._close_linked_postings(request_id)
        for bid in bids:
            if bid.get("status") != "pending":
                continue
            self._notifications.notify(
                bid.get("providerId"),
                type="bid_request_deleted",
                title="Event Request Cancelled",
                message=f"The {bid_request.get('eventType')} event request you bid on has been cancelled by the customer",
                data={"bidRequestId": request_id},
            )
        return {"id": request_id}

    def _close_linked_postings(self, request_id: str) -> None:
        try:
            for job in self._store.list("job_postings"):
                if job.get("bidRequestId") == request_id and job.get("status") == "active":
                    self._store.update("job_postings", job["id"], {"status": "closed", "updatedAt": utc_now_iso()})
        except Exception:
            logger.exception("Could not close job postings linked to bid request %s", request_id)

    def list_open_requests(
        self, *, status: Optional[str] = "open", page: int = 1, limit: int = 20
    ) -> Tuple[List[BidRequestSummary], Pagination]:
        rows = [r for r in self._store.list(COLLECTION) if not status or r.get("status") == status]
        paged, pagination = paginate(newest_first(rows), page, limit)
        summaries = [
            BidRequestSummary.from_document({key: value for key, value in row.items() if key != "bids"})
            for row in paged
        ]
        return summaries, pagination

    def list_provider_requests(
        self, provider: Identity, *, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[ProviderBidRequest], Pagination]:
        rows = []
        for bid_request in self._store.list(COLLECTION):
            bids = _bids(bid_request)
            own_bid = next((bid for bid in bids if bid.get("providerId") == provider.uid), None)
            if bid_request.get("status") != "open" and own_bid is None:
                continue
            if status and bid_request.get("status") != status:
                continue
            rows.append(
                {
                    **bid_request,
                    "bids": bids,
                    "providerBid": own_bid,
                    "hasProviderBid": own_bid is not None,
                    "bidCount": len(bids),
                }
            )
        paged, pagination = paginate(newest_first(rows), page, limit)
        return [ProviderBidRequest.from_document(row) for row in paged], pagination

    def list_customer_requests(
        self, customer: Identity, *, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[BidRequest], Pagination]:
        rows = [
            _with_bids(r)
            for r in self._store.list(COLLECTION)
            if r.get("customerId") == customer.uid and (not status or r.get("status") == status)
        ]
        paged, pagination = paginate(newest_first(rows), page, limit)
        return [BidRequest.from_document(row) for row in paged], pagination

    def reconcile_awarded_requests(self) -> Dict[str, int]:
        """Repairs half-finished awards; safe to run repeatedly.

        - an ``awarded`` request with an accepted bid but no booking gets its booking;
        - an ``awarded`` request without an accepted bid is reopened;
        - a booking pointing at a request that is gone or not awarded is removed.
        """
        report = {"checked": 0, "bookingsCreated": 0, "reopened": 0, "orphanBookingsRemoved": 0}
        requests = {r["id"]: r for r in self._store.list(COLLECTION)}
        award_bookings: Dict[str, List[Dict[str, Any]]] = {}
        for booking in self._store.list(BOOKINGS):
            if booking.get("bidRequestId"):
                award_bookings.setdefault(booking["bidRequestId"], []).append(booking)

        for request_id, bid_request in requests.items():
            if bid_request.get("status") != "awarded":
                continue
            report["checked"] += 1
            if award_bookings.get(request_id):
                continue
            with self._locks.hold(f"bid:{request_id}"):
                current = self._store.get(COLLECTION, request_id)
                if not current or current.get("status") != "awarded":
                    continue
                accepted = next((bid for bid in _bids(current) if bid.get("status") == "accepted"), None)
                if accepted:
                    booking_id = self._store.create(BOOKINGS, booking_from_award(current, accepted, request_id))
                    report["bookingsCreated"] += 1
                    logger.info("reconcile request=%s booking_created=%s", request_id, booking_id)
                else:
                    self._store.update(COLLECTION, request_id, {"status": "open", "updatedAt": utc_now_iso()})
                    report["reopened"] += 1
                    logger.info("reconcile request=%s reopened", request_id)

        for request_id, bookings in award_bookings.items():
            bid_request = requests.get(request_id)
            if bid_request and bid_request.get("status") == "awarded":
                continue
            with self._locks.hold(f"bid:{request_id}"):
                current = self._store.get(COLLECTION, request_id)
                if current and current.get("status") == "awarded":
                    continue
                for booking in bookings:
                    self._store.delete(BOOKINGS, booking["id"])
                    report["orphanBookingsRemoved"] += 1
                    logger.info("reconcile request=%s orphan_booking_removed=%s", request_id, booking["id"])
        return report
