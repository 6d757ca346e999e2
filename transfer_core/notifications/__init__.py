"""Payee notification gateways."""

from transfer_core.notifications.base import (
    DeliveryStats,
    NotificationDispatcher,
    NotificationGateway,
)
from transfer_core.notifications.console import ConsoleNotificationGateway

__all__ = [
    "ConsoleNotificationGateway",
    "DeliveryStats",
    "NotificationDispatcher",
    "NotificationGateway",
]
