import logging
from typing import Any, Dict, FrozenSet, List

from eventra.policy import COMPANY_ROLES, FREELANCER
from eventra.services.document_store import DocumentStore
from eventra.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def target_roles(need_whole_team: bool) -> FrozenSet[str]:
    return COMPANY_ROLES if need_whole_team else frozenset({FREELANCER})


def provider_matches(provider: Dict[str, Any], bid_request: Dict[str, Any]) -> bool:
    role = provider.get("role")
    if not provider.get("approved") or role not in target_roles(bool(bid_request.get("needWholeTeam"))):
        return False
    if role == "event_company":
        # An explicit list of needed services replaces the category match.
        if bid_request.get("servicesNeeded"):
            return True
        return bid_request.get("eventType") in (provider.get("categories") or [])
    return True


def match_providers(users: List[Dict[str, Any]], bid_request: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [user for user in users if provider_matches(user, bid_request)]


class ProviderMatcher:
    def __init__(self, store: DocumentStore, notifications: NotificationService):
        self._store = store
        self._notifications = notifications

    def notify_relevant_providers(self, bid_request: Dict[str, Any], request_id: str) -> int:
        """Fans a new bid request out to matching providers; never raises."""
        try:
            providers = match_providers(self._store.list("users"), bid_request)
            audience = "service providers" if bid_request.get("needWholeTeam") else "freelancers"
            sent = self._notifications.notify_many(
                {
                    "userId": provider["id"],
                    "type": "new_bid_request",
                    "title": "New Event Request Available",
                    "message": f"New {bid_request.get('eventType')} event request available for {audience}",
                    "data": {"bidRequestId": request_id},
                }
                for provider in providers
            )
            logger.info("Notified %d %s about bid request %s", sent, audience, request_id)
            return sent
        except Exception:
            logger.exception("Error notifying providers about bid request %s", request_id)
            return 0
