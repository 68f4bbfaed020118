"""
Storefront - Query Shaping
============================
Filter, sort and paginate a SQLAlchemy query from raw request parameters.

Parameters:
    field=value                  equality
    field__gt|gte|lt|lte=value   comparison
    sort=-total_price,created_at comma-separated, "-" for descending
    page=1&limit=10              1-based pagination (limit capped)

Only whitelisted columns may be filtered or sorted on.
"""

import operator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from math import ceil
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Query

from config.settings import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from common.exceptions import InvalidArgumentError
from common.helpers import safe_int, safe_decimal

RESERVED_PARAMS = {"page", "limit", "sort"}

_OPERATORS = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    def envelope(self, data: List[Any]) -> dict:
        """Standard list response body."""
        return {
            "success": True,
            "total": self.total,
            "results": len(data),
            "page": self.page,
            "pages": self.pages,
            "data": data,
        }


def _coerce(column, field: str, raw: str):
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        python_type = str

    if python_type is bool:
        lowered = str(raw).lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        value = None
    elif python_type is int:
        value = safe_int(raw)
    elif python_type is Decimal:
        value = safe_decimal(raw)
    elif python_type is datetime:
        try:
            value = datetime.fromisoformat(str(raw))
        except ValueError:
            value = None
    else:
        return str(raw)

    if value is None:
        raise InvalidArgumentError(f"Invalid value for {field}: {raw}")
    return value


def apply_filters(query: Query, model, params: Mapping[str, Any], filterable: Iterable[str]) -> Query:
    allowed = set(filterable)
    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue
        field, _, op = key.partition("__")
        if field not in allowed or (op and op not in _OPERATORS):
            raise InvalidArgumentError(f"Unsupported filter: {key}")
        column = getattr(model, field)
        value = _coerce(column, field, raw)
        if op:
            query = query.filter(_OPERATORS[op](column, value))
        else:
            query = query.filter(column == value)
    return query


def apply_sort(query: Query, model, sort: Optional[str], sortable: Iterable[str], default_sort: str) -> Query:
    allowed = set(sortable)
    clauses = []
    for token in (sort or default_sort).split(","):
        token = token.strip()
        if not token:
            continue
        desc = token.startswith("-")
        field = token.lstrip("-")
        if field not in allowed:
            raise InvalidArgumentError(f"Unsupported sort field: {field}")
        column = getattr(model, field)
        clauses.append(column.desc() if desc else column.asc())
    # Stable order across pages
    clauses.append(model.id.desc())
    return query.order_by(*clauses)


def paginate(
    query: Query,
    model,
    params: Mapping[str, Any],
    filterable: Iterable[str] = (),
    sortable: Iterable[str] = (),
    default_sort: str = "-created_at",
) -> Page:
    """Apply filters, sorting and pagination. Returns a Page with the total count."""
    page = safe_int(params.get("page")) if params.get("page") is not None else 1
    limit = safe_int(params.get("limit")) if params.get("limit") is not None else DEFAULT_PAGE_SIZE
    if page is None or limit is None or page < 1 or limit < 1:
        raise InvalidArgumentError("Page and limit must be positive numbers")
    limit = min(limit, MAX_PAGE_SIZE)

    query = apply_filters(query, model, params, filterable)
    total = query.order_by(None).count()
    query = apply_sort(query, model, params.get("sort"), sortable, default_sort)
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)
