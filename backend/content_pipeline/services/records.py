"""
Content record store.

The pipeline reads a record's file list and writes the extraction columns.
Each write is one atomic UPDATE keyed by the record id with server-side
timestamps; nothing is read back first, so repeated writes are plain
overwrites and concurrent writers resolve last-write-wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from content_pipeline.models.content import ContentRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class ContentSnapshot:
    """Read-only view of the fields the pipeline needs."""
    id:        str
    file_urls: tuple[str, ...] = field(default_factory=tuple)


class DocumentStore(ABC):

    @abstractmethod
    async def get(self, content_id: str) -> ContentSnapshot | None:
        """Return the record or None when it does not exist."""

    @abstractmethod
    async def save_extracted_text(self, content_id: str, text: str) -> None:
        """Write content_text and stamp text_extracted_at."""

    @abstractmethod
    async def save_extraction_error(self, content_id: str, message: str) -> None:
        """Write text_extraction_error and stamp text_extraction_attempted_at."""


class SqlDocumentStore(DocumentStore):
    """PostgreSQL-backed store over the content table."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        if session_factory is None:
            from content_pipeline.db.session import session_scope
            session_factory = session_scope
        self._session_factory = session_factory

    async def get(self, content_id: str) -> ContentSnapshot | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ContentRecord.id, ContentRecord.file_urls)
                .where(ContentRecord.id == content_id)
            )
            row = result.first()

        if row is None:
            return None
        return ContentSnapshot(id=row.id, file_urls=tuple(row.file_urls or ()))

    async def save_extracted_text(self, content_id: str, text: str) -> None:
        await self._update(
            content_id,
            content_text=text,
            text_extracted_at=func.now(),
        )

    async def save_extraction_error(self, content_id: str, message: str) -> None:
        await self._update(
            content_id,
            text_extraction_error=message,
            text_extraction_attempted_at=func.now(),
        )

    async def _update(self, content_id: str, **values) -> None:
        async with self._session_factory() as db:
            result = await db.execute(
                update(ContentRecord)
                .where(ContentRecord.id == content_id)
                .values(**values)
            )

        if result.rowcount == 0:
            logger.warning(
                "Content record missing, update dropped | content=%s fields=%s",
                content_id, sorted(values),
            )
        else:
            logger.debug("Content record updated | content=%s fields=%s", content_id, sorted(values))
