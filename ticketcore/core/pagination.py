from typing import Any, Generic, TypeVar
from pydantic import BaseModel, computed_field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")
MAX_PAGE_SIZE = 200


class PageDTO(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @computed_field
    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 1
        return max(1, -(-self.total // self.page_size))

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.pages


async def paginate(
        db: AsyncSession,
        base_stmt,
        *,
        page: int = 1,
        page_size: int = 20,
        where: list[Any] | None = None,
        order_by: list[Any] | None = None,
) -> tuple[list, int]:
    page = max(1, int(page))
    page_size = max(1, min(MAX_PAGE_SIZE, int(page_size)))

    stmt = base_stmt.where(*where) if where else base_stmt
    total = await db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))

    if order_by:
        stmt = stmt.order_by(*order_by)
    result = await db.scalars(stmt.limit(page_size).offset((page - 1) * page_size))
    return list(result.all()), int(total or 0)
