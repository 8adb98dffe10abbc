from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import (
    DataEnvelope,
    DeviceTokenRegisterRequest,
    Identity,
    NotificationCreate,
    NotificationRecord,
    PageEnvelope,
)
from eventra.routers.common import PageParams, envelope, page_envelope, page_params
from eventra.services.container import Services

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=PageEnvelope[NotificationRecord])
def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    paging: PageParams = Depends(page_params),
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    items, pagination = services.notifications.list_for_user(
        user.uid, unread_only=unread_only, page=paging.page, limit=paging.limit
    )
    return page_envelope("Notifications retrieved successfully", items, pagination)


@router.get("/count")
def unread_count(
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    return envelope("Notification count retrieved successfully", {"unreadCount": services.notifications.unread_count(user.uid)})


@router.patch("/mark-all-read")
def mark_all_read(
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    updated = services.notifications.mark_all_read(user.uid)
    return envelope("All notifications marked as read", {"updatedCount": updated})


@router.post("/register-device")
def register_device(
    payload: DeviceTokenRegisterRequest,
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    services.realtime.register_device_token(user.uid, payload.device_token)
    return envelope("Device registered", {"platform": payload.platform})


@router.post("", response_model=DataEnvelope[NotificationRecord], status_code=201)
def create_notification(
    payload: NotificationCreate,
    admin: Identity = Depends(require_action("notification.create")),
    services: Services = Depends(get_services),
):
    notification = services.notifications.create(payload.user_id, payload.type, payload.title, payload.message, payload.data)
    return envelope("Notification created successfully", notification)


@router.patch("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    services.notifications.mark_read(user.uid, notification_id)
    return envelope("Notification marked as read", {"id": notification_id})


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: str,
    user: Identity = Depends(require_action("notification.read")),
    services: Services = Depends(get_services),
):
    services.notifications.delete(user.uid, notification_id)
    return envelope("Notification deleted successfully", {"id": notification_id})
