import math
from typing import List, Tuple

from sqlmodel import Session, func, select

from app.models.common import Pagination


def paginate(session: Session, statement, page: int, limit: int) -> Tuple[List, Pagination]:
    """
    Applies offset/limit to `statement` and counts the unpaged result.
    `page` starts at 1.
    """
    total = session.exec(
        select(func.count()).select_from(statement.order_by(None).subquery())
    ).one()
    items = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()

    total_pages = math.ceil(total / limit) if limit else 0
    return items, Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
