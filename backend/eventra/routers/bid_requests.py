from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventra.auth import get_services, require_action
from eventra.models import (
    Bid,
    BidActionRequest,
    BidRequest,
    BidRequestCreate,
    BidRequestSummary,
    BidSubmitRequest,
    DataEnvelope,
    Identity,
    PageEnvelope,
    ProviderBidRequest,
)
from eventra.routers.common import PageParams, envelope, page_envelope, page_params
from eventra.services.container import Services

router = APIRouter(tags=["bid-requests"])


@router.post("/bid-request", response_model=DataEnvelope[BidRequest], status_code=201)
def create_bid_request(
    payload: BidRequestCreate,
    customer: Identity = Depends(require_action("bid_request.create")),
    services: Services = Depends(get_services),
):
    return envelope("Bid request created successfully", services.bids.create_bid_request(customer, payload))


@router.post("/bid-request/{request_id}/bid", response_model=DataEnvelope[Bid], status_code=201)
def submit_bid(
    request_id: str,
    payload: BidSubmitRequest,
    provider: Identity = Depends(require_action("bid_request.bid")),
    services: Services = Depends(get_services),
):
    return envelope("Bid submitted successfully", services.bids.submit_bid(provider, request_id, payload))


@router.patch("/bid-request/{request_id}/bid/{bid_id}", response_model=DataEnvelope[Bid])
def decide_bid(
    request_id: str,
    bid_id: str,
    payload: BidActionRequest,
    customer: Identity = Depends(require_action("bid_request.decide_bid")),
    services: Services = Depends(get_services),
):
    bid = services.bids.decide_bid(customer, request_id, bid_id, payload.action)
    return envelope(f"Bid {payload.action}ed successfully", bid)


@router.delete("/bid-request/{request_id}")
def delete_bid_request(
    request_id: str,
    customer: Identity = Depends(require_action("bid_request.delete")),
    services: Services = Depends(get_services),
):
    return envelope("Bid request deleted successfully", services.bids.delete_bid_request(customer, request_id))


@router.get("/bid-requests", response_model=PageEnvelope[BidRequestSummary])
def list_bid_requests(
    status: Optional[str] = Query(default="open"),
    paging: PageParams = Depends(page_params),
    provider: Identity = Depends(require_action("bid_request.browse")),
    services: Services = Depends(get_services),
):
    items, pagination = services.bids.list_open_requests(status=status, page=paging.page, limit=paging.limit)
    return page_envelope("Bid requests retrieved successfully", items, pagination)


@router.get("/provider-bid-requests", response_model=PageEnvelope[ProviderBidRequest])
def list_provider_bid_requests(
    status: Optional[str] = Query(default=None),
    paging: PageParams = Depends(page_params),
    provider: Identity = Depends(require_action("bid_request.browse")),
    services: Services = Depends(get_services),
):
    items, pagination = services.bids.list_provider_requests(provider, status=status, page=paging.page, limit=paging.limit)
    return page_envelope("Provider bid requests retrieved successfully", items, pagination)


@router.get("/my-bid-requests", response_model=PageEnvelope[BidRequest])
def list_my_bid_requests(
    status: Optional[str] = Query(default=None),
    paging: PageParams = Depends(page_params),
    customer: Identity = Depends(require_action("bid_request.list_mine")),
    services: Services = Depends(get_services),
):
    items, pagination = services.bids.list_customer_requests(customer, status=status, page=paging.page, limit=paging.limit)
    return page_envelope("Bid requests retrieved successfully", items, pagination)
