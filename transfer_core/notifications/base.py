"""Notification gateway interface and post-commit dispatcher."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from transfer_core.models import TransactionResult

logger = logging.getLogger(__name__)


class NotificationGateway(ABC):
    """Delivers a transfer notice to the payee."""

    @abstractmethod
    def notify(self, recipient_email: str, notice: TransactionResult) -> None:
        """Deliver ``notice``.

        Raises
        ------
        DeliveryError
            If the notice could not be handed over for delivery.
        """

    def close(self) -> None:
        """Release resources held by the gateway."""


@dataclass
class DeliveryStats:
    """Track notification outcomes."""

    dispatched: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class NotificationDispatcher:
    """Runs gateway calls off the caller's thread, once per transfer.

    Failures are logged and counted here; they never reach the code that
    performed the transfer.

    Parameters
    ----------
    gateway : NotificationGateway
        Delivery backend.
    max_workers : int
        Size of the worker pool.
    """

    def __init__(self, gateway: NotificationGateway, max_workers: int = 4) -> None:
        self.gateway = gateway
        self.stats = DeliveryStats()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transfer-notify"
        )
        self._lock = threading.Lock()

    def dispatch(self, notice: TransactionResult) -> Future:
        """Queue a notice for the payee of ``notice``."""
        with self._lock:
            self.stats.dispatched += 1
        return self._executor.submit(self._deliver, notice)

    def _deliver(self, notice: TransactionResult) -> bool:
        recipient = notice.payee.email
        try:
            self.gateway.notify(recipient, notice)
        except Exception:
            with self._lock:
                self.stats.failed += 1
            logger.exception(
                "Notification for transaction %s to %s failed",
                notice.transaction_id,
                recipient,
            )
            return False
        with self._lock:
            self.stats.delivered += 1
        logger.debug("Notification for transaction %s delivered", notice.transaction_id)
        return True

    def close(self, wait: bool = True) -> None:
        """Stop accepting notices, optionally waiting for queued ones."""
        self._executor.shutdown(wait=wait)
        self.gateway.close()
        logger.info(
            "Notification dispatcher closed: dispatched=%d, delivered=%d, failed=%d",
            self.stats.dispatched,
            self.stats.delivered,
            self.stats.failed,
        )
