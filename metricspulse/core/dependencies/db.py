from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.core.db import AsyncSessionLocal


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a new async session for the request and close it when the request is finished.

    Yields:
        async_session: An async session object.
    """
    async with AsyncSessionLocal() as async_session:
        yield async_session
