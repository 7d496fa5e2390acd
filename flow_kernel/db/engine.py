"""
flow_kernel.db.engine -- Engine and session lifecycle.

Responsibility:
    Holds the process-wide engine and session factory for the host
    services, and the one place a transaction is committed
    (``session_scope``).

Architecture position:
    Kernel > DB.  Imports models lazily, only to create or drop tables.

Invariants enforced:
    - Services flush, never commit; ``session_scope`` commits or rolls back.
    - An in-memory SQLite database shares one connection (``StaticPool``)
      so every session sees the same schema and rows.
    - Server databases run at READ COMMITTED; approvals are advanced under
      ``SELECT ... FOR UPDATE``.

Failure modes:
    - ``RuntimeError`` from ``get_engine`` / ``get_session`` before
      ``init_engine_from_url``.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from flow_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _engine_options(url: URL, echo: bool) -> dict[str, Any]:
    if url.get_backend_name() != "sqlite":
        return {
            "echo": echo,
            "pool_pre_ping": True,
            "pool_recycle": 1800,
            "isolation_level": "READ COMMITTED",
        }
    options: dict[str, Any] = {
        "echo": echo,
        "connect_args": {"check_same_thread": False},
    }
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    A second call disposes the previous engine and replaces it.

    Args:
        database_url: Any SQLAlchemy URL, e.g. ``sqlite:///approval_flows.db``
            or ``postgresql+psycopg://user@host/approvals``.
        echo: Log every SQL statement.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(url, **_engine_options(url, echo))
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "database": url.database, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session bound to the current engine."""
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            FlowService(session).create_flow(definition, created_by="alice")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the flow, flow version and approval tables."""
    from flow_kernel.db.base import Base
    import flow_kernel.models  # noqa: F401  registers the tables

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from flow_kernel.db.base import Base
    import flow_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
