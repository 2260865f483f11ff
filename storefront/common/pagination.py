import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from fastapi import Query
from sqlalchemy import func, select

from storefront.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(page: int = Query(1, ge=1),
                limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)) -> PageParams:
    return PageParams(page=page, limit=limit)


def pagination_meta(total_count: int, params: PageParams) -> Dict[str, int]:
    return {
        "current_page": params.page,
        "total_pages": math.ceil(total_count / params.limit) if total_count else 0,
        "total_count": total_count,
        "per_page": params.limit,
    }


async def paginate(session, stmt, params: PageParams) -> Tuple[List[Any], Dict[str, int]]:
    """Run a select for one page and count the unpaginated rows."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total_count = (await session.execute(count_stmt)).scalar_one()

    res = await session.execute(stmt.offset(params.offset).limit(params.limit))
    return res.all(), pagination_meta(total_count, params)


def page_payload(items: List[Any], meta: Dict[str, int]) -> Dict[str, Any]:
    return {"items": items, "pagination": meta}
