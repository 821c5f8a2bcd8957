from fastapi import APIRouter

from reminder_engine.api.routes import appointments, channels, reminders, reschedule_alerts, webhook

api_router = APIRouter()

# API routes (all have /api/v1 prefix from the app factory)
api_router.include_router(webhook.router)
api_router.include_router(reschedule_alerts.router)
api_router.include_router(reminders.router)
api_router.include_router(channels.router)
api_router.include_router(appointments.router)
