"""Database engine, session management, and table creation."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import IncidentConfig
from .models.base import Base
from .models.incident_template import DEFAULT_TEMPLATES, IncidentTemplate

logger = logging.getLogger("incident_commander.database")

_engine = None
_session_factory = None


def get_engine(config: IncidentConfig):
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory(config: IncidentConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def seed_default_templates(factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert the default incident templates that are not present yet."""
    async with factory() as session:
        existing = set((await session.execute(select(IncidentTemplate.name))).scalars().all())
        added = 0
        for name, title, severity, service, description in DEFAULT_TEMPLATES:
            if name in existing:
                continue
            session.add(IncidentTemplate(
                name=name,
                title=title,
                severity=severity,
                affected_service=service,
                description=description,
            ))
            added += 1
        await session.commit()
    if added:
        logger.info("Seeded %d default incident templates", added)
    return added


async def create_tables(config: IncidentConfig) -> None:
    """Create all database tables and seed default templates."""
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if config.seed_templates:
        await seed_default_templates(get_session_factory(config))


async def close_engine() -> None:
    """Close the database engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
