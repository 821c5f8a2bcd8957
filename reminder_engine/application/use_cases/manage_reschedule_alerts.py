# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Secretary actions on reschedule alerts.
# ============================================================================
"""Reschedule alert operations exposed to the secretary dashboard."""

import logging

from reminder_engine.core.domain.exceptions import AlertNotFound

from ...domain.entities.reschedule_alert import RescheduleAlert
from ..ports.log_port import RescheduleAlertRepository

logger = logging.getLogger(__name__)


class RescheduleAlertService:
    def __init__(self, alerts: RescheduleAlertRepository):
        self._alerts = alerts

    async def list_alerts(
        self,
        *,
        is_read: bool | None = None,
        is_resolved: bool | None = None,
        limit: int = 100,
    ) -> list[RescheduleAlert]:
        return await self._alerts.list_alerts(is_read=is_read, is_resolved=is_resolved, limit=limit)

    async def get(self, alert_id: str) -> RescheduleAlert:
        alert = await self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert

    async def mark_read(self, alert_id: str) -> RescheduleAlert:
        alert = await self.get(alert_id)
        if alert.is_read:
            return alert
        alert.mark_read()
        return await self._alerts.save(alert)

    async def mark_resolved(self, alert_id: str, resolved_by: str) -> RescheduleAlert:
        """Close the alert.

        Raises:
            AlertNotFound: Unknown alert.
            AlertAlreadyResolved: The alert was closed before.
        """
        alert = await self.get(alert_id)
        alert.resolve(resolved_by)
        alert = await self._alerts.save(alert)
        logger.info(f"Reschedule alert {alert_id} resolved by {resolved_by}")
        return alert

    async def unread_count(self) -> int:
        return len(await self._alerts.list_alerts(is_read=False, is_resolved=False, limit=1000))
