import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)


class Database:
    """Engine y session factory asíncronos para los repositorios de auditoría."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = self._create_engine(url, echo)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> AsyncEngine:
        """Crea el engine de base de datos asíncrono"""
        try:
            config = {"echo": echo, "future": True}
            if not url.startswith("sqlite"):
                config["pool_pre_ping"] = True
            engine = create_async_engine(url, **config)
            logger.info(f"Async database engine created ({url.split('://', 1)[0]})")
            return engine
        except Exception as e:
            logger.error(f"Failed to create async database engine: {e}")
            raise

    async def init_schema(self) -> None:
        """Crear las tablas del motor de recordatorios si no existen."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Reminder engine tables ready")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager para operaciones de base de datos asíncronas
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Async database error: {e}")
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()
