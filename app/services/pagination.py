# app/services/pagination.py
import math
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Query

from app.core.exceptions import InvalidRequestError


def parse_sort(sort: Optional[str], fields: Mapping[str, Any], *, default: str, subject: str) -> Tuple[str, str]:
    """'created_at,DESC' -> ('created_at', 'DESC'); the direction defaults to ASC."""
    field, _, direction = (sort or default).partition(",")
    field = field.strip()
    direction = (direction.strip() or "ASC").upper()
    if field not in fields:
        raise InvalidRequestError(
            f"Cannot sort {subject} by '{field}'",
            allowed=sorted(fields),
        )
    if direction not in ("ASC", "DESC"):
        raise InvalidRequestError(f"Sort direction must be ASC or DESC, got '{direction}'")
    return field, direction


def paginate(query: Query, column, id_column, direction: str, *, page: int, size: int) -> Tuple[List[Any], int, int]:
    """Order by column (id as tie-break), slice one page; returns (items, total, total_pages)."""
    if page < 1 or size < 1:
        raise InvalidRequestError("page and size must be positive")
    if direction == "DESC":
        order = (column.desc(), id_column.desc())
    else:
        order = (column.asc(), id_column.asc())

    total = query.count()
    items = query.order_by(*order).offset((page - 1) * size).limit(size).all()
    return items, total, math.ceil(total / size) if total else 0
