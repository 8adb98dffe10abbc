import base64
import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header, Request

from eventra.config import Settings
from eventra.errors import AuthenticationError
from eventra.models import Identity
from eventra.policy import authorize_identity
from eventra.services.container import Services

logger = logging.getLogger(__name__)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _b64urldecode(value: str) -> bytes:
    padding = "=" * ((4 - len(value) % 4) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def create_access_token(user_id: str, settings: Settings) -> tuple[str, str]:
    expiry = datetime.now(timezone.utc) + timedelta(hours=settings.auth_token_ttl_hours)
    payload = f"{user_id}|{int(expiry.timestamp())}".encode("utf-8")
    payload_part = _b64url(payload)
    sig = hmac.new(settings.auth_secret.encode("utf-8"), payload, hashlib.sha256).digest()
    token = f"{payload_part}.{_b64url(sig)}"
    return token, expiry.isoformat()


def verify_access_token(token: str, settings: Settings) -> Optional[str]:
    try:
        payload_part, sig_part = token.split(".", 1)
        payload = _b64urldecode(payload_part)
        sent_sig = _b64urldecode(sig_part)
        expected_sig = hmac.new(settings.auth_secret.encode("utf-8"), payload, hashlib.sha256).digest()
        if not hmac.compare_digest(sent_sig, expected_sig):
            return None
        user_id, expiry_ts = payload.decode("utf-8").split("|", 1)
        if datetime.now(timezone.utc).timestamp() > int(expiry_ts):
            return None
        return user_id
    except Exception:
        return None


def verify_firebase_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    import firebase_admin
    from firebase_admin import auth as firebase_auth
    from firebase_admin import credentials

    if not firebase_admin._apps:  # pylint: disable=protected-access
        options = {"databaseURL": settings.firebase_database_url} if settings.firebase_database_url else None
        if settings.firebase_credentials_path:
            firebase_admin.initialize_app(credentials.Certificate(settings.firebase_credentials_path), options)
        else:
            firebase_admin.initialize_app(options=options)
    try:
        return firebase_auth.verify_id_token(token)
    except Exception as exc:
        logger.info("Rejected Firebase ID token: %s", exc)
        return None


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def get_services(request: Request) -> Services:
    return request.app.state.services


def resolve_token_claims(authorization: Optional[str], settings: Settings) -> Optional[Dict[str, Any]]:
    token = parse_bearer_token(authorization)
    if not token:
        return None
    if settings.auth_provider == "firebase":
        decoded = verify_firebase_token(token, settings)
        if not decoded or not decoded.get("uid"):
            return None
        return {"uid": decoded["uid"], "email": decoded.get("email"), "name": decoded.get("name")}
    user_id = verify_access_token(token, settings)
    return {"uid": user_id} if user_id else None


def require_token_claims(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Verifies the bearer token only; the caller may not have a profile yet."""
    if not parse_bearer_token(authorization):
        raise AuthenticationError("Access denied. No token provided.")
    claims = resolve_token_claims(authorization, services.settings)
    if not claims:
        raise AuthenticationError("Invalid token.")
    return claims


def require_identity(
    claims: Dict[str, Any] = Depends(require_token_claims),
    services: Services = Depends(get_services),
) -> Identity:
    return services.users.identity(claims["uid"], claims)


def require_action(action: str) -> Callable[..., Identity]:
    """Builds a dependency that resolves the caller and checks the policy table for ``action``."""

    def dependency(identity: Identity = Depends(require_identity)) -> Identity:
        authorize_identity(identity.role, identity.approved, action)
        return identity

    return dependency
