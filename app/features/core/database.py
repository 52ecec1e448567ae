"""
Database configuration and session management.
"""
import os
import importlib
import structlog
from pathlib import Path
from typing import AsyncGenerator, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

logger = structlog.get_logger(__name__)

# --- Base class for all models ---
class Base(DeclarativeBase):
    """Base class for all models."""
    pass

from .config import get_settings

settings = get_settings()
DATABASE_URL = settings.DATABASE_URL

# Ensure async driver for PostgreSQL URLs
if DATABASE_URL.startswith('postgresql://'):
    DATABASE_URL = DATABASE_URL.replace('postgresql://', 'postgresql+asyncpg://', 1)


def _discover_and_import_models():
    """
    Dynamically discover and import all model files for relationship resolution.

    Every ``models.py`` below ``app/features`` is imported so that its tables
    are registered on ``Base.metadata`` before engines or migrations use it.
    """
    app_dir = Path(__file__).parent.parent.parent  # core -> features -> app
    features_dir = app_dir / "features"

    models_imported = []

    if not features_dir.exists():
        logger.warning("Features directory not found", path=str(features_dir))
        return models_imported

    excluded_dirs = {'tests', '__pycache__'}

    for models_file in sorted(features_dir.rglob("models.py")):
        if any(excluded_dir in models_file.parts for excluded_dir in excluded_dirs):
            continue

        relative_path = models_file.relative_to(app_dir)
        module_path = str(relative_path.with_suffix("")).replace(os.sep, ".")
        module_name = f"app.{module_path}"

        try:
            importlib.import_module(module_name)
            models_imported.append(module_name)
        except ImportError as e:
            logger.warning("Failed to import models module", module=module_name, error=str(e))

    logger.debug("Imported model modules", count=len(models_imported), modules=models_imported)
    return models_imported


def engine_options(url: str) -> Dict[str, Any]:
    """Pool configuration for the given database URL."""
    options: Dict[str, Any] = {"echo": False, "future": True}
    if url.startswith("postgresql"):
        options.update(
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
        )
    return options


# Discover and import all models for relationship resolution
_discover_and_import_models()

engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

# Create async session maker
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session, rolling back if the consumer raises.

    Yields:
        AsyncSession: Database session
    """
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_async_session():
    """
    Get the session factory for direct use in background tasks and scripts.

    Returns:
        async_sessionmaker: Session maker for creating sessions
    """
    return async_session


async def create_tables() -> None:
    """
    Create all tables.
    Models are automatically discovered and imported by _discover_and_import_models().
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")
