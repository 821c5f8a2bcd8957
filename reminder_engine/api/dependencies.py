"""
FastAPI dependencies for the reminder engine.
"""

from typing import TYPE_CHECKING

from fastapi import HTTPException, Request, status

if TYPE_CHECKING:
    from reminder_engine.core.container import ReminderEngineContainer


def get_container(request: Request) -> "ReminderEngineContainer":
    """
    Get the dependency container built at startup.

    Raises:
        HTTPException 503: The application has not finished starting.
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder engine is not initialized",
        )
    return container
