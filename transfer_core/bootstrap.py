"""Wire engine, query service and collaborators from configuration."""

import logging
from dataclasses import dataclass

from transfer_core.clock import Clock
from transfer_core.config import TransferCoreConfig
from transfer_core.engine import TransferEngine
from transfer_core.notifications.base import NotificationDispatcher, NotificationGateway
from transfer_core.notifications.console import ConsoleNotificationGateway
from transfer_core.policy import AuthorizationGateway, EligibilityPolicy
from transfer_core.query import QueryService
from transfer_core.store.base import LedgerStore

logger = logging.getLogger(__name__)


@dataclass
class TransferCore:
    """Assembled services sharing one store and clock."""

    engine: TransferEngine
    queries: QueryService
    dispatcher: NotificationDispatcher | None

    def close(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.close()


def build_notification_gateway(
    config: TransferCoreConfig, clock: Clock | None = None
) -> NotificationGateway | None:
    """Create the gateway named by ``config.notification.backend``."""
    backend = config.notification.backend
    if backend == "none":
        return None
    if backend == "kafka":
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        return KafkaNotificationGateway(config.kafka, topic=config.notification.topic, clock=clock)
    return ConsoleNotificationGateway()


def build_core(
    store: LedgerStore,
    config: TransferCoreConfig | None = None,
    authorization_gateway: AuthorizationGateway | None = None,
    notification_gateway: NotificationGateway | None = None,
    clock: Clock | None = None,
) -> TransferCore:
    """Build the transfer engine and query service over ``store``.

    An explicit ``notification_gateway`` takes precedence over the
    configured backend.
    """
    config = config or TransferCoreConfig()
    clock = clock or Clock()

    gateway = notification_gateway or build_notification_gateway(config, clock)
    dispatcher = (
        NotificationDispatcher(gateway, max_workers=config.notification.max_workers)
        if gateway is not None
        else None
    )
    policy = EligibilityPolicy(config.authorization, authorization_gateway)

    logger.info(
        "Transfer core ready: store=%s notifications=%s authorization=%s",
        type(store).__name__,
        type(gateway).__name__ if gateway is not None else "disabled",
        "enabled" if config.authorization.enabled else "disabled",
    )
    return TransferCore(
        engine=TransferEngine(
            store, policy=policy, dispatcher=dispatcher, clock=clock, config=config.transfer
        ),
        queries=QueryService(store, clock=clock),
        dispatcher=dispatcher,
    )
