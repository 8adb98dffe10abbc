from typing import Any, Dict

from fastapi import APIRouter, Depends

from eventra.auth import get_services, require_action, require_token_claims
from eventra.models import Identity, UserProfileCreate
from eventra.routers.common import envelope
from eventra.services.container import Services

router = APIRouter(tags=["users"])


@router.post("/users/profile", status_code=201)
def create_profile(
    payload: UserProfileCreate,
    claims: Dict[str, Any] = Depends(require_token_claims),
    services: Services = Depends(get_services),
):
    if not payload.email and claims.get("email"):
        payload.email = claims["email"]
    profile = services.users.create_profile(claims["uid"], payload)
    return envelope("Profile created successfully", profile)


@router.post("/admin/users/{uid}/approve")
def approve_user(
    uid: str,
    admin: Identity = Depends(require_action("admin.approve_user")),
    services: Services = Depends(get_services),
):
    return envelope("User approved successfully", services.users.approve(uid))


@router.post("/admin/reconcile/bid-awards")
def reconcile_bid_awards(
    admin: Identity = Depends(require_action("admin.reconcile")),
    services: Services = Depends(get_services),
):
    return envelope("Reconciliation completed", services.bids.reconcile_awarded_requests())
