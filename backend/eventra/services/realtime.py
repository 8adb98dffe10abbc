import logging
from threading import Lock
from typing import Any, Dict, Optional, Protocol, Set

from eventra.services.push_sender import PushSender

logger = logging.getLogger(__name__)


class RealtimePublisher(Protocol):
    def publish(self, user_id: str, event: str, payload: Dict[str, Any]) -> None: ...


class ConnectionRegistry:
    """In-memory registry of device tokens per user, delivered through FCM.

    Publishing is best effort: a push failure is logged and unregistered tokens
    are forgotten. Stored notifications stay the durable source of truth.
    """

    def __init__(self, push_sender: Optional[PushSender] = None):
        self._lock = Lock()
        self._device_tokens: Dict[str, Set[str]] = {}
        self._push_sender = push_sender

    @property
    def push_enabled(self) -> bool:
        return self._push_sender is not None and self._push_sender.enabled

    def register_device_token(self, user_id: str, device_token: str) -> None:
        if not device_token.strip():
            return
        with self._lock:
            self._device_tokens.setdefault(user_id, set()).add(device_token.strip())

    def device_tokens(self, user_id: str) -> Set[str]:
        with self._lock:
            return set(self._device_tokens.get(user_id, set()))

    def publish(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        tokens = list(self.device_tokens(user_id))
        if not tokens or self._push_sender is None:
            return
        invalid_tokens = self._push_sender.send(
            tokens=tokens,
            title=str(payload.get("title", "")),
            body=str(payload.get("message", "")),
            data={
                "event": event,
                "notification_id": str(payload.get("id", "")),
                "type": str(payload.get("type", "")),
            },
        )
        if invalid_tokens:
            logger.info("Forgetting %d unregistered device tokens for user %s", len(invalid_tokens), user_id)
            with self._lock:
                current = self._device_tokens.get(user_id, set())
                for token in invalid_tokens:
                    current.discard(token)
