"""
NoteForge Backend - Content Store
==================================

What:  Loads and saves the HTML body of one document in `file_contents`.
How:   Each call opens its own session from the injected factory.
       load():  select; if missing, insert-ignoring-conflict, then select again
       save():  UPDATE ... SET version = version + 1 WHERE file_id = :id
Who:   Content routes, NoteSession (through the HTTP surface or in-process).

Concurrency:
    The unique constraint on file_id settles concurrent first loads: the
    losing insert is a no-op and both callers read the winner's row.
    Saves are last-write-wins; version is bumped but never compared.

Every database failure is logged with its driver detail and re-raised as
StoreUnavailable, whose message carries none of it.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteforge.exceptions import StoreUnavailable
from noteforge.models.file_content import FileContent

logger = logging.getLogger(__name__)


@dataclass
class LoadedContent:
    file_id: uuid.UUID
    content: str
    version: int
    updated_at: datetime


def _to_loaded(row: FileContent) -> LoadedContent:
    updated_at = row.updated_at
    # SQLite hands back naive datetimes; everything is stored in UTC
    if updated_at is not None and updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return LoadedContent(
        file_id=row.file_id,
        content=row.content,
        version=row.version,
        updated_at=updated_at,
    )


class ContentStore:
    """Document content persistence over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load(self, document_id: uuid.UUID) -> LoadedContent:
        """
        Returns the stored content, creating an empty row on first access.

        Raises:
            StoreUnavailable: The database could not be read or written.
        """
        try:
            async with self.session_factory() as session:
                row = await self._select(session, document_id)
                if row is not None:
                    return _to_loaded(row)

                await self._insert_if_absent(session, document_id)
                row = await self._select(session, document_id)
        except SQLAlchemyError as e:
            logger.error("Content load failed for %s: %s", document_id, str(e))
            raise StoreUnavailable(document_id=str(document_id)) from e
        except OSError as e:
            logger.error("Content store unreachable while loading %s: %s", document_id, str(e))
            raise StoreUnavailable(document_id=str(document_id)) from e

        if row is None:
            # Insert succeeded but the row vanished: the document was deleted
            logger.error("Content row for %s missing after creation", document_id)
            raise StoreUnavailable(document_id=str(document_id))

        logger.info("Created empty content row for document %s", document_id)
        return _to_loaded(row)

    async def save(self, document_id: uuid.UUID, content: str) -> LoadedContent:
        """
        Replaces the stored content and bumps the version.

        Raises:
            StoreUnavailable: No row for the document, or the write failed.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(FileContent)
            .where(FileContent.file_id == document_id)
            .values(
                content=content,
                updated_at=now,
                auto_saved_at=now,
                version=FileContent.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    await session.rollback()
                    logger.warning("Save matched no content row for document %s", document_id)
                    raise StoreUnavailable(
                        message="The document could not be saved. Reload it and try again.",
                        document_id=str(document_id),
                    )
                await session.commit()
                row = await self._select(session, document_id)
        except SQLAlchemyError as e:
            logger.error("Content save failed for %s: %s", document_id, str(e))
            raise StoreUnavailable(document_id=str(document_id)) from e
        except OSError as e:
            logger.error("Content store unreachable while saving %s: %s", document_id, str(e))
            raise StoreUnavailable(document_id=str(document_id)) from e

        if row is None:
            raise StoreUnavailable(document_id=str(document_id))

        logger.info(
            "Saved document %s (version %d, %d chars)",
            document_id,
            row.version,
            len(content),
        )
        return _to_loaded(row)

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    async def _select(session: AsyncSession, document_id: uuid.UUID) -> Optional[FileContent]:
        result = await session.execute(
            select(FileContent)
            .where(FileContent.file_id == document_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _insert_if_absent(session: AsyncSession, document_id: uuid.UUID) -> None:
        values = {
            "id": uuid.uuid4(),
            "file_id": document_id,
            "content": "",
            "version": 1,
            "updated_at": datetime.now(timezone.utc),
        }
        dialect = session.bind.dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(FileContent).values(**values).on_conflict_do_nothing(
                index_elements=[FileContent.file_id]
            )
        elif dialect == "sqlite":
            stmt = sqlite_insert(FileContent).values(**values).on_conflict_do_nothing(
                index_elements=[FileContent.file_id]
            )
        else:
            stmt = insert(FileContent).values(**values)

        try:
            await session.execute(stmt)
            await session.commit()
        except IntegrityError:
            # Lost the race on a dialect without ON CONFLICT support
            await session.rollback()
