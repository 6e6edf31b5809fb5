"""Fan a notification out to every active user of a company.

Notifications are a best-effort side effect: they are written after the
delivery change has committed, and a failure here is logged and dropped.
It never undoes the change that triggered it and is never retried.
"""

from __future__ import annotations

import structlog

from scheduling.domain.errors import StoreError
from scheduling.domain.models import Notification
from scheduling.domain.types import NotificationType
from scheduling.notifications.store import NotificationStore
from scheduling.observability.metrics import NOTIFICATIONS_CREATED
from scheduling.store.store import DeliveryStore

logger = structlog.get_logger()


class NotificationDispatcher:
    """Resolve recipients and write one notification per active user.

    Args:
        deliveries: Store used to look up the target company's active users.
        notifications: Store the notification batch is written to.
    """

    def __init__(self, deliveries: DeliveryStore, notifications: NotificationStore) -> None:
        self._deliveries = deliveries
        self._notifications = notifications

    def notify_company(
        self,
        company_id: str,
        *,
        actor_company_id: str,
        type: NotificationType,
        title: str,
        message: str,
        delivery_id: str | None = None,
    ) -> list[Notification]:
        """Notify every active user of *company_id*.

        The acting company never notifies itself: if *company_id* equals
        *actor_company_id* nothing is written.

        Returns:
            The notifications written (empty on failure or no recipients).
        """
        if company_id == actor_company_id:
            logger.warning(
                "notification_to_actor_company_skipped",
                company_id=company_id,
                delivery_id=delivery_id,
            )
            return []

        try:
            recipients = self._deliveries.active_user_ids(company_id)
            batch = [
                Notification(
                    user_id=user_id,
                    delivery_id=delivery_id,
                    type=type,
                    title=title,
                    message=message,
                )
                for user_id in recipients
            ]
            stored = self._notifications.insert_batch(batch)
        except StoreError as exc:
            logger.error(
                "notification_dispatch_failed",
                company_id=company_id,
                delivery_id=delivery_id,
                notification_type=type.value,
                error=str(exc),
            )
            return []

        if stored:
            NOTIFICATIONS_CREATED.labels(type=type.value).inc(len(stored))
        logger.info(
            "notifications_created",
            company_id=company_id,
            delivery_id=delivery_id,
            notification_type=type.value,
            recipients=len(stored),
        )
        return stored
