"""
Startup and shutdown of the reminder engine.

Startup builds (or reuses) the container, prepares the database schema, loads
channels into the governor and starts the cadence scheduler. Shutdown reverses
those steps.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..domain.value_objects.channel_state import ConnectionState
from .container import ReminderEngineContainer

logger = logging.getLogger(__name__)


class LifecycleManager:
    """Runs the engine start steps in order and undoes them on stop."""

    def __init__(self, container: ReminderEngineContainer) -> None:
        self._container = container
        self._initialized = False

    async def startup(self) -> None:
        if self._initialized:
            logger.warning("Reminder engine already started")
            return

        logger.info("Starting reminder engine lifecycle...")
        container = self._container

        if container.database:
            await container.database.init_schema()

        await container.governor.load()
        await self._refresh_connection_states()

        self._verify_configurations()

        await container.scheduler.start()

        self._initialized = True
        logger.info("Reminder engine startup completed")

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("Reminder engine was not started, nothing to stop")
            return

        logger.info("Stopping reminder engine lifecycle...")
        await self._container.scheduler.stop()
        await self._container.close()

        self._initialized = False
        logger.info("Reminder engine shutdown completed")

    async def _refresh_connection_states(self) -> None:
        """Ask the provider for each channel's state; webhooks keep it current afterwards."""
        provider = self._container.provider
        connection_state = getattr(provider, "connection_state", None)
        if connection_state is None:
            return

        governor = self._container.governor
        for channel in await self._container.channels.list_all():
            try:
                raw_state = await connection_state(channel.external_instance_id)
                await governor.update_connection_state(channel.id, ConnectionState.from_provider(raw_state))
            except Exception as e:
                logger.warning(f"Could not read connection state of channel {channel.id}: {e}")

    def _verify_configurations(self) -> None:
        # Missing values degrade features instead of failing startup
        settings = self._container.settings
        if not settings.EVOLUTION_API_KEY:
            logger.warning("EVOLUTION_API_KEY not configured - sends will be rejected by the provider")
        if not settings.CORPORATE_WHATSAPP_NUMBER:
            logger.warning("CORPORATE_WHATSAPP_NUMBER not configured - reschedule notices will not be sent")
        if not settings.REDIS_URL:
            logger.info("REDIS_URL not configured - reminder dedup ledger is process-local")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI lifespan: reuse the container placed on app.state or build one from settings."""
    container = getattr(app.state, "container", None)
    if container is None:
        container = ReminderEngineContainer(getattr(app.state, "settings", None))
        app.state.container = container

    lifecycle = LifecycleManager(container)

    await lifecycle.startup()
    try:
        yield
    finally:
        await lifecycle.shutdown()
