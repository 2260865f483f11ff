from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.db.connection import async_session


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    # uncommitted work is rolled back when the session closes
    async with async_session() as session:
        yield session
