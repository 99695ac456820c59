import logging
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy import Table, Column, String, LargeBinary, DateTime, MetaData, text, select, delete

from repokeeper.domain.exceptions import ArtifactNotFoundException, StorageException
from repokeeper.domain.models import Key
from repokeeper.infrastructure.storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "artifacts"


def artifacts_table(name: str = DEFAULT_TABLE) -> Table:
    """SQLAlchemy core Table definition holding one row per storage key."""
    return Table(
        name, MetaData(),
        Column('key', String, primary_key=True),
        Column('content', LargeBinary, nullable=False),
        Column('updated_at', DateTime(timezone=True), server_default=text('NOW()')),
    )


class SqlStorage(Storage):
    """
    Storage backed by a PostgreSQL table.
    Every write is a single upsert, so concurrent writers of one key never leave a partial row.
    """

    def __init__(self, db_url: str, table: str = DEFAULT_TABLE):
        self.db_url = db_url
        self.table = artifacts_table(table)
        self.engine = create_async_engine(db_url, echo=False)

    @asynccontextmanager
    async def _transaction(self):
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise StorageException(f"SQL storage operation on '{self.table.name}' failed: {e}") from e

    async def ensure_schema(self) -> None:
        """Creates the artifacts table if it does not exist yet."""
        async with self._transaction() as conn:
            await conn.run_sync(self.table.metadata.create_all)
        logger.info(f"Ensured storage table '{self.table.name}' exists.")

    async def get(self, key: Key) -> bytes:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(self.table.c.content).where(self.table.c.key == key.string())
            )
            row = result.first()
        if row is None:
            raise ArtifactNotFoundException(key)
        return bytes(row[0])

    async def put(self, key: Key, data: bytes) -> None:
        async with self._transaction() as conn:
            stmt = insert(self.table).values(key=key.string(), content=bytes(data))

            # Last write wins.
            upsert_stmt = stmt.on_conflict_do_update(
                index_elements=['key'],
                set_={
                    'content': stmt.excluded.content,
                    'updated_at': text('NOW()'),
                },
            )

            await conn.execute(upsert_stmt)

    async def exists(self, key: Key) -> bool:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(self.table.c.key).where(self.table.c.key == key.string())
            )
            return result.first() is not None

    async def delete(self, key: Key) -> None:
        async with self._transaction() as conn:
            result = await conn.execute(
                delete(self.table).where(self.table.c.key == key.string())
            )
        if result.rowcount == 0:
            raise ArtifactNotFoundException(key)

    async def close(self) -> None:
        """Disposes the engine and its connection pool."""
        await self.engine.dispose()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SqlStorage):
            return NotImplemented
        return self.db_url == other.db_url and self.table.name == other.table.name

    def __hash__(self) -> int:
        return hash((self.db_url, self.table.name))

    def __repr__(self) -> str:
        safe_url = make_url(self.db_url).render_as_string(hide_password=True)
        return f"SqlStorage({safe_url!r}, table={self.table.name!r})"
