import asyncio
import contextlib
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, false, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from listing_api.database import check_db_connection, close_db, create_session_factory
from listing_api.models.document import DocumentRow
from listing_api.stores.documents import ABSENT, Document, DocumentStore, Key, TransactionConflict, Write

logger = logging.getLogger(__name__)


def _json_filter(name: str, value: Any):
    element = DocumentRow.data[name]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    if isinstance(value, str):
        return element.as_string() == value
    return None


class SqlDocumentStore(DocumentStore):
    """Documents stored as JSON rows of a single table, versioned for compare-and-swap"""

    backend_name = "sql"

    def __init__(self, engine: AsyncEngine, max_attempts: int = 5):
        super().__init__(max_attempts=max_attempts)
        self.engine = engine
        self.session_factory: async_sessionmaker[AsyncSession] = create_session_factory(engine)
        # SQLite has a single writer
        self._commit_lock = asyncio.Lock() if engine.dialect.name == "sqlite" else contextlib.nullcontext()

    async def ping(self) -> bool:
        return await check_db_connection(self.engine)

    async def close(self):
        await close_db(self.engine)

    async def _fetch(self, collection: str, doc_id: str) -> Document:
        async with self.session_factory() as session:
            row = (await session.execute(
                select(DocumentRow.data, DocumentRow.version).where(
                    DocumentRow.collection == collection,
                    DocumentRow.id == doc_id,
                    DocumentRow.deleted == false(),
                )
            )).first()
        if row is None:
            return Document(doc_id, {}, ABSENT)
        return Document(doc_id, dict(row.data), row.version)

    async def _scan(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        query = select(DocumentRow.id, DocumentRow.data, DocumentRow.version).where(
            DocumentRow.collection == collection,
            DocumentRow.deleted == false(),
        )
        # Values without a SQL comparison are filtered by the caller
        clauses = [c for c in (_json_filter(k, v) for k, v in (filters or {}).items()) if c is not None]
        if clauses:
            query = query.where(and_(*clauses))

        async with self.session_factory() as session:
            rows = (await session.execute(query.order_by(DocumentRow.created_at))).all()
        return [Document(row.id, dict(row.data), row.version) for row in rows]

    async def _commit(self, writes: List[Write], checks: Dict[Key, int]):
        async with self._commit_lock, self.session_factory() as session:
            async with session.begin():
                for (collection, doc_id), version in checks.items():
                    if await self._current_version(session, collection, doc_id) != version:
                        raise TransactionConflict(collection, doc_id)
                for write in writes:
                    await self._apply(session, write)

    async def _current_version(self, session: AsyncSession, collection: str, doc_id: str) -> int:
        version = await session.scalar(
            select(DocumentRow.version).where(
                DocumentRow.collection == collection,
                DocumentRow.id == doc_id,
                DocumentRow.deleted == false(),
            )
        )
        return version if version is not None else ABSENT

    async def _apply(self, session: AsyncSession, write: Write):
        where = and_(DocumentRow.collection == write.collection, DocumentRow.id == write.id)
        live = and_(where, DocumentRow.deleted == false())
        expected = write.expected_version

        if expected is None:
            expected = await self._current_version(session, write.collection, write.id)
            if write.data is None and expected == ABSENT:
                return

        if write.data is None:
            if expected == ABSENT:
                if await self._current_version(session, write.collection, write.id) != ABSENT:
                    raise TransactionConflict(write.collection, write.id)
                return
            result = await session.execute(
                update(DocumentRow)
                .where(live, DocumentRow.version == expected)
                .values(deleted=True)
            )
            if result.rowcount != 1:
                raise TransactionConflict(write.collection, write.id)
            return

        if expected == ABSENT:
            revived = await session.execute(
                update(DocumentRow)
                .where(where, DocumentRow.deleted == true())
                .values(data=write.data, deleted=False, version=DocumentRow.version + 1, created_at=func.now())
            )
            if revived.rowcount == 1:
                return
            try:
                await session.execute(
                    insert(DocumentRow).values(
                        collection=write.collection,
                        id=write.id,
                        data=write.data,
                        version=1,
                    )
                )
            except IntegrityError:
                raise TransactionConflict(write.collection, write.id)
            return

        result = await session.execute(
            update(DocumentRow)
            .where(live, DocumentRow.version == expected)
            .values(data=write.data, version=expected + 1)
        )
        if result.rowcount != 1:
            raise TransactionConflict(write.collection, write.id)
