import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from eventra.errors import ForbiddenError, NotFoundError, ValidationError
from eventra.models import NotificationRecord, Pagination
from eventra.services.clock import utc_now_iso
from eventra.services.document_store import DocumentStore
from eventra.services.pagination import newest_first, paginate
from eventra.services.realtime import RealtimePublisher

logger = logging.getLogger(__name__)

COLLECTION = "notifications"


class NotificationService:
    def __init__(self, store: DocumentStore, publisher: Optional[RealtimePublisher] = None):
        self._store = store
        self._publisher = publisher

    def _build(self, user_id: str, type: str, title: str, message: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "userId": user_id,
            "type": type,
            "title": title,
            "message": message,
            "data": data or {},
            "read": False,
            "createdAt": utc_now_iso(),
        }

    def _push(self, notification: Dict[str, Any]) -> None:
        if self._publisher is None:
            return
        try:
            self._publisher.publish(notification["userId"], "notification", notification)
        except Exception:
            logger.exception("Realtime push failed for user %s", notification.get("userId"))

    def notify(
        self,
        user_id: Optional[str],
        *,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Fire-and-forget: failures are logged and never reach the caller."""
        if not user_id:
            logger.warning("Skipping %s notification without recipient", type)
            return None
        notification = self._build(user_id, type, title, message, data)
        try:
            notification_id = self._store.create(COLLECTION, notification)
        except Exception:
            logger.exception("Error creating %s notification for user %s", type, user_id)
            return None
        self._push({"id": notification_id, **notification})
        return notification_id

    def notify_many(self, notifications: Iterable[Dict[str, Any]]) -> int:
        """Writes one notification per entry in a single batch; failures are logged."""
        batch = [
            self._build(item["userId"], item["type"], item["title"], item["message"], item.get("data"))
            for item in notifications
        ]
        if not batch:
            return 0
        try:
            ids = self._store.create_many(COLLECTION, batch)
        except Exception:
            logger.exception("Batch notification write failed (%d recipients)", len(batch))
            return 0
        for notification_id, notification in zip(ids, batch):
            self._push({"id": notification_id, **notification})
        return len(batch)

    def create(self, user_id: Optional[str], type: Optional[str], title: Optional[str], message: Optional[str], data: Optional[Dict[str, Any]] = None) -> NotificationRecord:
        if not user_id or not type or not title or not message:
            raise ValidationError("userId, type, title, and message are required")
        notification = self._build(user_id, type, title, message, data)
        notification_id = self._store.create(COLLECTION, notification)
        self._push({"id": notification_id, **notification})
        return NotificationRecord.from_document({"id": notification_id, **notification})

    def _for_user(self, user_id: str, unread_only: bool = False) -> List[Dict[str, Any]]:
        rows = [n for n in self._store.list(COLLECTION) if n.get("userId") == user_id]
        if unread_only:
            rows = [n for n in rows if n.get("read") is False]
        return rows

    def list_for_user(
        self, user_id: str, *, unread_only: bool = False, page: int = 1, limit: int = 20
    ) -> Tuple[List[NotificationRecord], Pagination]:
        rows = newest_first(self._for_user(user_id, unread_only))
        paged, pagination = paginate(rows, page, limit)
        return [NotificationRecord.from_document(row) for row in paged], pagination

    def unread_count(self, user_id: str) -> int:
        return len(self._for_user(user_id, unread_only=True))

    def _owned(self, user_id: str, notification_id: str, verb: str) -> Dict[str, Any]:
        notification = self._store.get(COLLECTION, notification_id)
        if not notification:
            raise NotFoundError("The specified notification does not exist")
        if notification.get("userId") != user_id:
            raise ForbiddenError(f"You can only {verb} your own notifications")
        return notification

    def mark_read(self, user_id: str, notification_id: str) -> None:
        self._owned(user_id, notification_id, "update")
        now = utc_now_iso()
        self._store.update(COLLECTION, notification_id, {"read": True, "readAt": now, "updatedAt": now})

    def mark_all_read(self, user_id: str) -> int:
        now = utc_now_iso()
        unread = self._for_user(user_id, unread_only=True)
        for notification in unread:
            self._store.update(COLLECTION, notification["id"], {"read": True, "readAt": now, "updatedAt": now})
        return len(unread)

    def delete(self, user_id: str, notification_id: str) -> None:
        self._owned(user_id, notification_id, "delete")
        self._store.delete(COLLECTION, notification_id)
