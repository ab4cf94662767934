from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.services.errors import ServiceError


class BaseService:
    """
    Base class for marketplace services. Holds the request session shared by the
    repositories a service orchestrates.

    Ownership, participant and role rules live in services; repositories only
    read and write rows.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def translate_unique_violation(self, error: ServiceError) -> AsyncIterator[None]:
        """
        Roll back and raise `error` when the wrapped write trips a unique constraint.

        Services pre-check duplicates to produce a friendly message; this covers the
        concurrent request that slips past the pre-check.
        """
        try:
            yield
        except IntegrityError:
            await self.session.rollback()
            raise error
