from typing import Any, Optional, Sequence

from fastapi import Depends, Query

from eventra.auth import get_services
from eventra.models import DataEnvelope, PageEnvelope, Pagination
from eventra.services.container import Services


class PageParams:
    def __init__(self, page: int, limit: int):
        self.page = page
        self.limit = limit


def page_params(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    services: Services = Depends(get_services),
) -> PageParams:
    settings = services.settings
    return PageParams(page=page, limit=min(limit or settings.default_page_limit, settings.max_page_limit))


def envelope(message: str, data: Any) -> DataEnvelope:
    return DataEnvelope(message=message, data=data)


def page_envelope(message: str, items: Sequence[Any], pagination: Pagination) -> PageEnvelope:
    return PageEnvelope(message=message, data=list(items), pagination=pagination)
