"""
Database engine, sessions and startup schema reconciliation.

Reconciliation is additive only: missing tables are created, and in
development missing columns are added. Nothing is ever dropped or retyped.
"""
from __future__ import annotations

import logging
from typing import Iterator, List

from fastapi import Request
from sqlalchemy import Engine, create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings
from .errors import DatabaseUnavailable
from .models import Base

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> Engine:
    url = settings.database_url
    kwargs = {"echo": settings.database_echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db(request: Request) -> Iterator[Session]:
    """Per-request session bound to the application's session factory."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def check_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Unable to connect to the database: {e}")
        raise DatabaseUnavailable(f"Unable to connect to the database: {e}") from e


def add_missing_columns(engine: Engine) -> List[str]:
    """Add model columns missing from existing tables. Returns ``table.column`` names added."""
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    preparer = engine.dialect.identifier_preparer
    added: List[str] = []

    with engine.begin() as conn:
        for table in Base.metadata.sorted_tables:
            if table.name not in existing_tables:
                continue
            present = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in present:
                    continue
                column_type = column.type.compile(dialect=engine.dialect)
                # Added as nullable: existing rows have no value for it.
                conn.execute(
                    text(
                        f"ALTER TABLE {preparer.quote(table.name)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {column_type}"
                    )
                )
                added.append(f"{table.name}.{column.name}")
                logger.info(f"Added column {table.name}.{column.name} ({column_type})")
    return added


def sync_database(engine: Engine, settings: Settings) -> None:
    """Verify connectivity and reconcile the stored schema with the models."""
    check_connection(engine)
    logger.info("Database connection established successfully.")

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        if settings.is_development:
            add_missing_columns(engine)
    except SQLAlchemyError as e:
        logger.error(f"Database schema synchronization failed: {e}")
        raise DatabaseUnavailable(f"Database schema synchronization failed: {e}") from e

    logger.info("Database synchronized successfully.")
