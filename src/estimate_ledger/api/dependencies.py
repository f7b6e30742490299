"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.ledger import EstimateLedger


def get_ledger(request: Request) -> EstimateLedger:
    """Ledger facade created at application startup."""
    return request.app.state.ledger


async def get_db_session(
    ledger: Annotated[EstimateLedger, Depends(get_ledger)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with ledger.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor(x_actor: Annotated[str | None, Header()] = None) -> str:
    """Who is performing the operation, recorded on audit events."""
    return x_actor or "system"


# Type aliases for cleaner dependency injection
Ledger = Annotated[EstimateLedger, Depends(get_ledger)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Actor = Annotated[str, Depends(get_actor)]
