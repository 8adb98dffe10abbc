from fastapi import APIRouter, Depends

from eventra.auth import create_access_token, get_services, require_identity
from eventra.errors import AuthenticationError, ValidationError
from eventra.models import AuthLoginRequest, AuthLoginResponse, Identity
from eventra.services.container import Services

router = APIRouter(prefix="/auth", tags=["auth"])

DEMO_PASSWORD = "eventra-demo"


@router.post("/login", response_model=AuthLoginResponse)
def login(payload: AuthLoginRequest, services: Services = Depends(get_services)):
    if services.settings.auth_provider != "local":
        raise ValidationError("Password login is only available with the local auth provider")
    user_id = payload.user_id.strip()
    if not user_id:
        raise ValidationError("userId is required")
    if payload.password != DEMO_PASSWORD:
        raise AuthenticationError("Invalid credentials")
    token, expires_at = create_access_token(user_id, services.settings)
    return AuthLoginResponse(access_token=token, user_id=user_id, expires_at=expires_at)


@router.get("/me", response_model=Identity)
def me(identity: Identity = Depends(require_identity)):
    return identity
