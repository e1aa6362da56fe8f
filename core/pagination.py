"""List-endpoint helpers: query parsing, sorting and pagination metadata."""
import math
import re
from typing import NamedTuple

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 100
DEFAULT_SORT = "-createdAt"


class PageParams(NamedTuple):
    page: int
    limit: int
    skip: int
    sort: str


LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _to_int(value):
    """Read the leading integer of ``value``, so "2.5" is 2 and "5abc" is 5."""
    if value is None:
        return None
    match = LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def parse_pagination(query, defaults=None) -> PageParams:
    """Normalize ``page``, ``limit`` and ``sort`` from a query dict.

    Bad input never raises: non-numeric or out-of-range values fall back to
    the defaults, and ``limit`` is capped at 100.
    """
    defaults = defaults or {}
    query = query or {}

    page = _to_int(query.get("page"))
    if not page:
        page = defaults.get("page") or DEFAULT_PAGE
    page = max(1, page)

    limit = _to_int(query.get("limit"))
    if not limit or limit < 1:
        limit = defaults.get("limit") or DEFAULT_LIMIT
    limit = min(MAX_LIMIT, max(1, limit))

    sort = query.get("sort") or defaults.get("sort") or DEFAULT_SORT
    return PageParams(page=page, limit=limit, skip=(page - 1) * limit, sort=sort)


def build_pagination(total, page, limit):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def apply_sort(queryset, sort, fields, default="-created_at"):
    """Order ``queryset`` by API sort keys such as ``-price,title``.

    ``fields`` maps API names to model fields; unknown keys are dropped.
    """
    ordering = []
    for key in (sort or "").split(","):
        key = key.strip()
        if not key:
            continue
        desc = key.startswith("-")
        field = fields.get(key.lstrip("-+"))
        if field:
            ordering.append(f"-{field}" if desc else field)
    return queryset.order_by(*(ordering or [default]))


def paginate(queryset, params: PageParams):
    """Slice ``queryset`` for the requested page and build its metadata."""
    total = queryset.count()
    items = list(queryset[params.skip:params.skip + params.limit])
    return items, build_pagination(total, params.page, params.limit)
