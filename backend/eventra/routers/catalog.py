from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import (
    DataEnvelope,
    Identity,
    PageEnvelope,
    ScheduleEntry,
    ServiceCreate,
    ServiceListing,
    ServiceStatusRequest,
)
from eventra.routers.common import PageParams, envelope, page_envelope, page_params
from eventra.services.container import Services

router = APIRouter(prefix="/services", tags=["services"])


@router.post("", response_model=DataEnvelope[ServiceListing], status_code=201)
def create_service(
    payload: ServiceCreate,
    provider: Identity = Depends(require_action("service.create")),
    services: Services = Depends(get_services),
):
    return envelope("Service created successfully", services.catalog.create(provider, payload))


@router.get("", response_model=PageEnvelope[ServiceListing])
def list_services(
    provider_id: Optional[str] = Query(default=None, alias="providerId"),
    category: Optional[str] = Query(default=None),
    paging: PageParams = Depends(page_params),
    services: Services = Depends(get_services),
):
    rows, pagination = services.catalog.list_services(
        provider_id=provider_id, category=category, page=paging.page, limit=paging.limit
    )
    return page_envelope("Services retrieved successfully", rows, pagination)


@router.get("/my", response_model=DataEnvelope[list[ServiceListing]])
def list_my_services(
    provider: Identity = Depends(require_action("service.manage")),
    services: Services = Depends(get_services),
):
    return envelope("User services retrieved successfully", services.catalog.my_services(provider))


@router.get("/{service_id}/schedule", response_model=DataEnvelope[list[ScheduleEntry]])
def service_schedule(service_id: str, services: Services = Depends(get_services)):
    return envelope("Schedule retrieved successfully", services.catalog.schedule(service_id))


@router.get("/{service_id}", response_model=DataEnvelope[ServiceListing])
def get_service(service_id: str, services: Services = Depends(get_services)):
    return envelope("Service retrieved successfully", services.catalog.get_service(service_id))


@router.patch("/{service_id}/status", response_model=DataEnvelope[ServiceListing])
def set_service_status(
    service_id: str,
    payload: ServiceStatusRequest,
    provider: Identity = Depends(require_action("service.manage")),
    services: Services = Depends(get_services),
):
    service = services.catalog.set_active(provider, service_id, payload.is_active)
    return envelope(f"Service {'activated' if payload.is_active else 'deactivated'} successfully", service)


@router.delete("/{service_id}")
def delete_service(
    service_id: str,
    provider: Identity = Depends(require_action("service.manage")),
    services: Services = Depends(get_services),
):
    return envelope("Service deleted successfully", services.catalog.delete(provider, service_id))
