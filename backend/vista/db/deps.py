"""
Database Dependencies for FastAPI Routes

Routes declare ``db: DBSession`` (or ``Depends(get_db)``) and FastAPI provides
a session that is rolled back on error and always closed. Tests override
``get_db`` to hand routes a session bound to the test database.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vista.db.session import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    Usage in Routes:
    ----------------
    @router.post("/webhooks/notion")
    async def notion_webhook(payload: dict, db: DBSession):
        ...

    Transaction Management:
    -----------------------
    Each request gets its own session. Services commit explicitly; anything
    uncommitted is rolled back when the request ends.

    Yields:
        AsyncSession: Database session for the current request
    """
    async for session in get_session():
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]
