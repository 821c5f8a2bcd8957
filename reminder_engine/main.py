"""
Process entry point: logging, optional Sentry and the ASGI app.

Run with `uvicorn reminder_engine.main:app`.
"""

import logging

import sentry_sdk

from reminder_engine.config.settings import get_settings
from reminder_engine.core.app_factory import create_app

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        send_default_pii=False,
        environment=settings.ENVIRONMENT,
    )

# Create application using factory
app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting reminder engine in {settings.ENVIRONMENT} mode")
    uvicorn.run(
        "reminder_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
