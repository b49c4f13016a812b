"""Sorting and pagination helpers for list endpoints"""

import enum
from typing import Any

from sqlalchemy.orm import Query

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class SortDirection(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


def apply_sort(query: Query, column, direction: SortDirection, tiebreaker=None) -> Query:
    """Order by an allow-listed column; `tiebreaker` keeps pages stable"""
    ordering = column.asc() if direction == SortDirection.ASC else column.desc()
    if tiebreaker is not None:
        return query.order_by(ordering, tiebreaker)
    return query.order_by(ordering)


def paginate(query: Query, page: int, limit: int) -> tuple[list[Any], dict]:
    """Run a page of `query` and return (items, pagination metadata)"""
    total = query.order_by(None).count()
    items = query.limit(limit).offset((page - 1) * limit).all()
    return items, {
        "pagina": page,
        "limite": limit,
        "total": total,
        "paginas": (total + limit - 1) // limit,
    }
