from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.tenant_context import RequestContext, get_request_context

DB = Annotated[AsyncSession, Depends(get_db)]
Context = Annotated[RequestContext, Depends(get_request_context)]

class Pagination:
    """skip/limit query parameters shared by list endpoints."""

    def __init__(
        self,
        skip: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=200),
    ):
        self.skip = skip
        self.limit = limit

Page = Annotated[Pagination, Depends()]
