import logging
from threading import Lock
from typing import Dict, List

logger = logging.getLogger(__name__)


class PushSender:
    """Firebase Cloud Messaging delivery to registered device tokens."""

    def __init__(self, credentials_path: str = ""):
        self._credentials_path = credentials_path.strip()
        self._lock = Lock()
        self._initialized = False
        self._enabled = False
        self._messaging = None

    @property
    def enabled(self) -> bool:
        self._ensure_initialized()
        return self._enabled

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            if not self._credentials_path:
                self._initialized = True
                self._enabled = False
                logger.info("Push sender disabled: FIREBASE_CREDENTIALS_PATH not set")
                return
            try:
                import firebase_admin
                from firebase_admin import credentials, messaging

                if not firebase_admin._apps:  # pylint: disable=protected-access
                    firebase_admin.initialize_app(credentials.Certificate(self._credentials_path))
                self._messaging = messaging
                self._enabled = True
                logger.info("Push sender initialized")
            except Exception:
                self._enabled = False
                logger.exception("Push sender disabled: Firebase init failed")
            finally:
                self._initialized = True

    def send(self, tokens: List[str], title: str, body: str, data: Dict[str, str]) -> List[str]:
        """Returns the tokens FCM reported as unregistered so callers can forget them."""
        self._ensure_initialized()
        if not self._enabled or not tokens:
            return []
        assert self._messaging is not None
        messaging = self._messaging
        try:
            batch = messaging.send_each_for_multicast(
                messaging.MulticastMessage(
                    notification=messaging.Notification(title=title, body=body),
                    tokens=tokens,
                    data=data,
                )
            )
        except Exception:
            logger.exception("Push send failed for %d device(s)", len(tokens))
            return []
        stale = [
            token
            for token, response in zip(tokens, batch.responses)
            if not response.success and isinstance(response.exception, messaging.UnregisteredError)
        ]
        if batch.failure_count:
            logger.info("Push delivered %d/%d; %d stale token(s)", batch.success_count, len(tokens), len(stale))
        return stale
