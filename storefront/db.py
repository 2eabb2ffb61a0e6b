"""
Database layer — declarative base, engine/session factory, upsert helper.

Note: SQLite (aiosqlite) for local runs and tests, PostgreSQL (asyncpg) in
production. Everything dialect-specific lives here.
"""

from typing import Any

from sqlalchemy import event, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════

class Base(DeclarativeBase):
    pass


type SessionFactory = async_sessionmaker[AsyncSession]


# ═══════════════════════════════════════════════════════════════════════════════
# Engine Setup
# ═══════════════════════════════════════════════════════════════════════════════

def _sqlite_pragmas(dbapi_conn: Any, _record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=10000")
    cursor.close()


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _sqlite_pragmas)
    return engine


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    create_tables: bool = True,
) -> tuple[SessionFactory, AsyncEngine]:
    """Create engine (and tables) and return (session_factory, engine)."""
    # Table modules must be imported before create_all sees the metadata
    import storefront.catalog._tables  # noqa: F401
    import storefront.orders._tables  # noqa: F401

    engine = create_engine(url)

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


async def ping(session_factory: SessionFactory) -> bool:
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    return True


# ═══════════════════════════════════════════════════════════════════════════════
# INSERT ... ON CONFLICT DO NOTHING
# ═══════════════════════════════════════════════════════════════════════════════

def insert_ignore(
    session: AsyncSession,
    model: type[Any],
    values: dict[str, Any],
    index_elements: list[str],
) -> Any:
    """
    Build an insert that silently skips on key conflict.

    Note: executed result has rowcount 1 on insert, 0 on conflict. That
    rowcount is the atomic claim everything idempotent is built on.
    """
    dialect = session.get_bind().dialect.name

    if dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values)
    elif dialect == "postgresql":
        stmt = pg_insert(model).values(**values)
    else:
        raise RuntimeError(f"Unsupported dialect for insert_ignore: {dialect}")

    return stmt.on_conflict_do_nothing(index_elements=index_elements)


__all__ = (
    "Base",
    "SessionFactory",
    "create_engine",
    "create_database",
    "ping",
    "insert_ignore",
)
