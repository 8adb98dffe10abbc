import logging
from typing import Any, Dict, Optional

from eventra.errors import ConflictError, ForbiddenError, NotFoundError
from eventra.models import Identity, UserProfile, UserProfileCreate
from eventra.policy import ADMIN, requires_approval
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

COLLECTION = "users"


class UserService:
    def __init__(self, store: DocumentStore, notifications: NotificationService):
        self._store = store
        self._notifications = notifications

    def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        return self._store.get(COLLECTION, uid)

    def identity(self, uid: str, claims: Optional[Dict[str, Any]] = None) -> Identity:
        profile = self.get_profile(uid)
        if not profile:
            raise NotFoundError("User profile not found")
        claims = claims or {}
        return Identity(
            uid=uid,
            email=profile.get("email") or claims.get("email") or "",
            name=profile.get("name") or claims.get("name") or "",
            role=profile.get("role") or "",
            approved=bool(profile.get("approved")),
        )

    def create_profile(self, uid: str, request: UserProfileCreate) -> UserProfile:
        if request.role == ADMIN:
            raise ForbiddenError("Admin accounts cannot be self-registered")
        if self.get_profile(uid):
            raise ConflictError("A profile already exists for this user")
        now = utc_now_iso()
        profile = {
            **request.model_dump(by_alias=True),
            # Providers wait for an admin before they can act on the marketplace.
            "approved": not requires_approval(request.role),
            "createdAt": now,
            "updatedAt": now,
        }
        self._store.create(COLLECTION, profile, doc_id=uid)
        logger.info("Profile created for %s with role %s", uid, request.role)
        return UserProfile.from_document({"id": uid, **profile})

    def approve(self, uid: str) -> UserProfile:
        profile = self.get_profile(uid)
        if not profile:
            raise NotFoundError("User profile not found")
        update = {"approved": True, "approvedAt": utc_now_iso(), "updatedAt": utc_now_iso()}
        self._store.update(COLLECTION, uid, update)
        self._notifications.notify(
            uid,
            type="account_approved",
            title="Account Approved",
            message="Your account has been approved. You can now start using the platform.",
        )
        return UserProfile.from_document({**profile, **update})
