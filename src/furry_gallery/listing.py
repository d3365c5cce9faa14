"""
Query-string driven listing: pagination, filtering and the paginated envelope.

Column names only ever come from a `Resource` declared in code. Values from
the query string are always bound as parameters, including LIMIT/OFFSET.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from furry_gallery.db import Database
from furry_gallery.exceptions import ValidationError
from furry_gallery.schemas import Pagination, SortOrder

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "id"

Caster = Callable[[str], Any]


def int_param(value: str) -> int:
    return int(value.strip())


def bool_param(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValueError(f"not a boolean: {value}")


def _positive_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 1 else default


@dataclass(frozen=True)
class PaginationParams:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort_by: str = DEFAULT_SORT_BY
    sort_order: SortOrder = SortOrder.asc


@dataclass
class FilterClause:
    """A WHERE clause (without the keyword) plus its bound values."""

    conditions: List[str] = field(default_factory=list)
    values: List[Any] = field(default_factory=list)

    @property
    def where_clause(self) -> str:
        if not self.conditions:
            return ""
        return "WHERE " + " AND ".join(self.conditions)

    def add(self, condition: str, *values: Any) -> "FilterClause":
        self.conditions.append(condition)
        self.values.extend(values)
        return self

    def combine(self, other: Optional["FilterClause"]) -> "FilterClause":
        if other is None:
            return self
        return FilterClause(self.conditions + other.conditions, self.values + other.values)


@dataclass(frozen=True)
class Resource:
    """
    Describes one listable table.

    exact_fields maps a query parameter (and column) to the caster applied to
    its value; text_fields are matched case-insensitively as substrings;
    sortable is the allowlist for `sortBy` and default_sort applies when it
    is absent.
    """

    table: str
    exact_fields: Mapping[str, Caster] = field(default_factory=dict)
    text_fields: Sequence[str] = ()
    sortable: Sequence[str] = (DEFAULT_SORT_BY,)
    columns: str = "*"
    default_sort: str = DEFAULT_SORT_BY


# PUBLIC_INTERFACE
def parse_pagination_params(
    query_params: Mapping[str, str],
    sortable: Optional[Sequence[str]] = None,
    default_sort: str = DEFAULT_SORT_BY,
) -> PaginationParams:
    """Read page/limit/sortBy/sortOrder; unknown sort columns are rejected when an allowlist is given."""
    page = _positive_int(query_params.get("page"), DEFAULT_PAGE)
    limit = _positive_int(query_params.get("limit"), DEFAULT_LIMIT)

    sort_by = query_params.get("sortBy") or default_sort
    if sortable is not None and sort_by not in sortable:
        raise ValidationError(f"Nepovolený sloupec pro řazení: {sort_by}")

    raw_order = (query_params.get("sortOrder") or SortOrder.asc.value).upper()
    try:
        sort_order = SortOrder(raw_order)
    except ValueError:
        raise ValidationError(f"Neplatný směr řazení: {raw_order}")

    return PaginationParams(
        page=page,
        limit=limit,
        offset=(page - 1) * limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


# PUBLIC_INTERFACE
def parse_filter_params(
    query_params: Mapping[str, str],
    exact_fields: Mapping[str, Caster],
    text_fields: Sequence[str] = (),
    column_prefix: str = "",
) -> FilterClause:
    """Build `column = %s` / `column ILIKE %s` conditions for the parameters present."""
    clause = FilterClause()
    for name, caster in exact_fields.items():
        raw = query_params.get(name)
        if raw is None:
            continue
        try:
            value = caster(raw)
        except ValueError:
            raise ValidationError(f"Neplatná hodnota parametru {name}")
        clause.add(f"{column_prefix}{name} = %s", value)

    for name in text_fields:
        raw = query_params.get(name)
        if raw:
            clause.add(f"{column_prefix}{name} ILIKE %s", f"%{raw}%")

    return clause


# PUBLIC_INTERFACE
def paginated_response(rows: List[Dict[str, Any]], total_items: int, params: PaginationParams) -> Dict[str, Any]:
    """The `{success, data, pagination}` envelope."""
    pagination = Pagination(
        page=params.page,
        limit=params.limit,
        totalItems=total_items,
        totalPages=math.ceil(total_items / params.limit) if params.limit else 0,
    )
    return {"success": True, "data": rows, "pagination": pagination.model_dump()}


def count_value(row: Optional[Dict[str, Any]]) -> int:
    if not row:
        return 0
    return int(row.get("count") or 0)


# PUBLIC_INTERFACE
def handle_get_request(
    db: Database,
    query_params: Mapping[str, str],
    resource: Resource,
    extra: Optional[FilterClause] = None,
) -> Dict[str, Any]:
    """Filtered, sorted and paginated listing of one resource plus its total count."""
    params = parse_pagination_params(query_params, resource.sortable, resource.default_sort)
    clause = parse_filter_params(query_params, resource.exact_fields, resource.text_fields).combine(extra)

    rows = db.fetch_all(
        f"SELECT {resource.columns} FROM {resource.table} {clause.where_clause} "
        f"ORDER BY {params.sort_by} {params.sort_order.value} LIMIT %s OFFSET %s",
        clause.values + [params.limit, params.offset],
    )
    total = count_value(
        db.fetch_one(f"SELECT COUNT(*) AS count FROM {resource.table} {clause.where_clause}", clause.values)
    )
    logger.debug(f"Listed {len(rows)}/{total} rows from {resource.table}")
    return paginated_response(rows, total, params)
