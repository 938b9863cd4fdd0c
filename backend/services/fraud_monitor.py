"""
Fraud Monitor
=============
Periodically polls a fraud-check source and surfaces each check as a
severity-tiered notification. The monitor is owned by whoever starts it
(the application lifespan in production, a test otherwise) and is stopped
explicitly; it plays no part in allocation decisions.

Sources:
  HttpFraudCheckSource    GET a remote endpoint returning a JSON list of checks
  LedgerFraudCheckSource  compute checks from the local store
"""
import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import requests
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.constants import NotificationSeverity
from database.repository import AidStore
from database.schemas import FraudCheck, Notification
from services.fraud_checks import compute_fraud_checks

logger = logging.getLogger(__name__)

FraudCheckSource = Callable[[], Awaitable[List[FraudCheck]]]

_SEVERITY_LOG_LEVEL = {
    NotificationSeverity.HIGH: logging.ERROR,
    NotificationSeverity.MEDIUM: logging.WARNING,
    NotificationSeverity.LOW: logging.INFO,
}


class HttpFraudCheckSource:
    def __init__(self, url: str, timeout: float = None, session: requests.Session = None):
        self.url = url
        self.timeout = settings.FRAUD_CHECK_TIMEOUT if timeout is None else timeout
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = f"{settings.APP_NAME}/{settings.APP_VERSION}"

    def _fetch(self) -> List[FraudCheck]:
        resp = self._session.get(self.url, timeout=self.timeout)
        resp.raise_for_status()
        return [FraudCheck.model_validate(item) for item in resp.json()]

    async def __call__(self) -> List[FraudCheck]:
        return await asyncio.to_thread(self._fetch)


class LedgerFraudCheckSource:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def __call__(self) -> List[FraudCheck]:
        async with self.session_factory() as session:
            return await compute_fraud_checks(AidStore(session))


class NotificationFeed:
    """Bounded, newest-first feed of notifications, logged by severity."""

    def __init__(self, maxlen: int = None):
        self._items = deque(maxlen=maxlen or settings.NOTIFICATION_FEED_SIZE)

    def notify(self, check: FraudCheck) -> Notification:
        notification = Notification(
            check_id=check.id,
            severity=check.severity,
            message=f"Fraud Alert: {check.description}",
            # Only high-severity findings carry a link to the alert detail
            link=f"/fraud-alerts/{check.id}" if check.severity == NotificationSeverity.HIGH else None,
            received_at=datetime.utcnow(),
        )
        self._items.appendleft(notification)
        logger.log(_SEVERITY_LOG_LEVEL[check.severity], notification.message)
        return notification

    def recent(self, limit: Optional[int] = None, severity: Optional[NotificationSeverity] = None):
        items = [n for n in self._items if severity is None or n.severity == severity]
        return items[:limit] if limit else items

    def clear(self):
        self._items.clear()

    def __len__(self):
        return len(self._items)


class FraudMonitor:
    def __init__(self, source: FraudCheckSource, notifier: NotificationFeed,
                 interval_seconds: float = None):
        self.source = source
        self.notifier = notifier
        self.interval = settings.FRAUD_POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.last_run: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[FraudCheck]:
        """Poll the source once; failures are logged and swallowed."""
        try:
            checks = await self.source()
        except Exception as e:
            logger.error(f"Fraud detection check failed: {e}")
            return []
        self.last_run = datetime.utcnow()
        for check in checks:
            self.notifier.notify(check)
        return checks

    async def _loop(self):
        # First poll happens one interval after start
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="fraud-monitor")
        logger.info(f"Fraud monitor started (every {self.interval:g}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Fraud monitor stopped")


def build_fraud_monitor(session_factory: async_sessionmaker,
                        notifier: NotificationFeed = None) -> FraudMonitor:
    """Pick the HTTP source when FRAUD_CHECK_URL is set, else the local ledger."""
    if settings.FRAUD_CHECK_URL:
        source = HttpFraudCheckSource(settings.FRAUD_CHECK_URL)
    else:
        source = LedgerFraudCheckSource(session_factory)
    return FraudMonitor(source, notifier or NotificationFeed())
