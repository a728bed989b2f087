"""FastAPI dependencies."""

from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linkvault.db.repository import LinkRepository, SqlAlchemyLinkRepository
from linkvault.db.session import get_db
from linkvault.ingest.pipeline import LinkProcessor


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


async def get_repository(db: AsyncSession = Depends(get_database)) -> LinkRepository:
    """Repository bound to the request's session."""
    return SqlAlchemyLinkRepository(db)


async def get_link_processor(
    repository: LinkRepository = Depends(get_repository),
) -> AsyncIterator[LinkProcessor]:
    """Ingestion pipeline for one request; HTTP clients close afterwards."""
    async with LinkProcessor(repository) as processor:
        yield processor
