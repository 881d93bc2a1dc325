"""
Alert Board
Per-session user notices that expire after ALERT_TTL_SECONDS
"""
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger

from kyc_onboarding.config import settings
from kyc_onboarding.schemas.onboarding import Alert, AlertType


class AlertBoard:
    """Ordered alerts for one onboarding session"""

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.ALERT_TTL_SECONDS)
        self._alerts: List[Alert] = []

    def add(self, message: str, alert_type: AlertType = AlertType.INFO, now: Optional[datetime] = None) -> Alert:
        now = now or datetime.utcnow()
        alert = Alert(
            id=uuid.uuid4().hex,
            message=message,
            type=alert_type,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._alerts.append(alert)
        logger.debug(f"Alert [{alert_type.value}]: {message}")
        return alert

    def active(self, now: Optional[datetime] = None) -> List[Alert]:
        now = now or datetime.utcnow()
        return [alert for alert in self._alerts if alert.expires_at > now]

    def dismiss(self, alert_id: str) -> bool:
        before = len(self._alerts)
        self._alerts = [alert for alert in self._alerts if alert.id != alert_id]
        return len(self._alerts) < before

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop expired alerts and return how many were removed"""
        now = now or datetime.utcnow()
        before = len(self._alerts)
        self._alerts = [alert for alert in self._alerts if alert.expires_at > now]
        return before - len(self._alerts)

    def __len__(self) -> int:
        return len(self._alerts)
