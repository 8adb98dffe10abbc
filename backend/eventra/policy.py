from typing import Dict, FrozenSet

from eventra.errors import ForbiddenError

CUSTOMER = "customer"
FREELANCER = "freelancer"
JOBSEEKER = "jobseeker"
ADMIN = "admin"

COMPANY_ROLES: FrozenSet[str] = frozenset({"event_company", "caterer", "transport", "photographer"})
PROVIDER_ROLES: FrozenSet[str] = COMPANY_ROLES | {FREELANCER}
ALL_ROLES: FrozenSet[str] = PROVIDER_ROLES | {CUSTOMER, JOBSEEKER, ADMIN}

# action -> roles allowed to perform it
POLICY: Dict[str, FrozenSet[str]] = {
    "booking.create": frozenset({CUSTOMER}),
    "booking.decide": PROVIDER_ROLES,
    "booking.update_status": ALL_ROLES,
    "booking.list": ALL_ROLES,
    "booking.read": ALL_ROLES,
    "bid_request.create": frozenset({CUSTOMER}),
    "bid_request.list_mine": frozenset({CUSTOMER}),
    "bid_request.delete": frozenset({CUSTOMER}),
    "bid_request.decide_bid": frozenset({CUSTOMER}),
    "bid_request.browse": PROVIDER_ROLES,
    "bid_request.bid": PROVIDER_ROLES,
    "freelancer.jobs": frozenset({FREELANCER}),
    "freelancer.apply": frozenset({FREELANCER}),
    "freelancer.applications": frozenset({FREELANCER}),
    "job_posting.post": COMPANY_ROLES,
    # Postings created for a bid request belong to the customer who asked.
    "job_posting.manage": COMPANY_ROLES | {CUSTOMER},
    "service.create": PROVIDER_ROLES,
    "service.manage": PROVIDER_ROLES,
    "staff_job.post": COMPANY_ROLES,
    "staff_job.list_mine": COMPANY_ROLES,
    "staff_job.applications": COMPANY_ROLES,
    "staff_job.decide": COMPANY_ROLES,
    "staff_job.delete": COMPANY_ROLES,
    "staff_job.browse": frozenset({JOBSEEKER}),
    "staff_job.apply": frozenset({JOBSEEKER}),
    "staff_job.my_applications": frozenset({JOBSEEKER}),
    "notification.read": ALL_ROLES,
    "notification.create": frozenset({ADMIN}),
    "admin.approve_user": frozenset({ADMIN}),
    "admin.reconcile": frozenset({ADMIN}),
}


def is_allowed(role: str, action: str) -> bool:
    if action not in POLICY:
        raise KeyError(f"Unknown action: {action}")
    return role in POLICY[action]


def authorize(role: str, action: str) -> None:
    if not is_allowed(role, action):
        allowed = ", ".join(sorted(POLICY[action]))
        raise ForbiddenError(f"Access denied. Required roles: {allowed}")


def requires_approval(role: str) -> bool:
    return role in PROVIDER_ROLES


# Unapproved providers may still read their own inbox.
APPROVAL_EXEMPT_ACTIONS: FrozenSet[str] = frozenset({"notification.read"})


def authorize_identity(role: str, approved: bool, action: str) -> None:
    authorize(role, action)
    if requires_approval(role) and not approved and action not in APPROVAL_EXEMPT_ACTIONS:
        raise ForbiddenError("Account pending approval")
