from typing import Any, Dict, List, Sequence, Tuple, TypeVar

from eventra.models import Pagination

T = TypeVar("T")


def newest_first(docs: List[Dict[str, Any]], field: str = "createdAt") -> List[Dict[str, Any]]:
    return sorted(docs, key=lambda doc: str(doc.get(field) or ""), reverse=True)


def paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], Pagination]:
    """Slices an already-filtered, fully-fetched collection in memory."""
    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    return list(items[start : start + limit]), Pagination(page=page, limit=limit, total=len(items))
