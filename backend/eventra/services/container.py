import logging
from dataclasses import dataclass
from typing import Optional

from eventra.config import Settings
from eventra.services.bid_service import BidService
from eventra.services.booking_service import BookingService
from eventra.services.catalog import ServiceCatalog
from eventra.services.document_store import DocumentStore, FirebaseDocumentStore, SqliteDocumentStore
from eventra.services.job_postings import JobPostingService
from eventra.services.locks import KeyedLock
from eventra.services.matching import ProviderMatcher
from eventra.services.notification_service import NotificationService
from eventra.services.push_sender import PushSender
from eventra.services.realtime import ConnectionRegistry
from eventra.services.staff_jobs import StaffJobService
from eventra.services.users import UserService

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "firebase":
        return FirebaseDocumentStore(settings.firebase_credentials_path, settings.firebase_database_url)
    return SqliteDocumentStore(settings.db_path)


@dataclass
class Services:
    """Every collaborator a request handler needs, wired once per application."""

    settings: Settings
    store: DocumentStore
    locks: KeyedLock
    realtime: ConnectionRegistry
    notifications: NotificationService
    users: UserService
    catalog: ServiceCatalog
    bookings: BookingService
    matcher: ProviderMatcher
    job_postings: JobPostingService
    bids: BidService
    staff_jobs: StaffJobService

    @classmethod
    def build(cls, settings: Settings, store: Optional[DocumentStore] = None) -> "Services":
        store = store if store is not None else build_store(settings)
        locks = KeyedLock(enabled=settings.serialize_conflict_checks)
        realtime = ConnectionRegistry(push_sender=PushSender(settings.firebase_credentials_path))
        notifications = NotificationService(store, realtime)
        matcher = ProviderMatcher(store, notifications)
        job_postings = JobPostingService(store, locks, notifications)
        bookings = BookingService(store, notifications, locks, fail_open=settings.fail_open)
        logger.info(
            "Services wired: store=%s fail_open=%s serialize=%s",
            type(store).__name__,
            settings.fail_open,
            settings.serialize_conflict_checks,
        )
        return cls(
            settings=settings,
            store=store,
            locks=locks,
            realtime=realtime,
            notifications=notifications,
            users=UserService(store, notifications),
            catalog=ServiceCatalog(store),
            bookings=bookings,
            matcher=matcher,
            job_postings=job_postings,
            bids=BidService(store, notifications, matcher, job_postings, locks, bookings),
            staff_jobs=StaffJobService(store, notifications, locks),
        )
