"""Console gateway for development: prints notices as JSON."""

import json
import sys
import threading
from typing import TextIO

from transfer_core.models import TransactionResult
from transfer_core.notifications.base import NotificationGateway
from transfer_core.notifications.serialization import to_dict


class ConsoleNotificationGateway(NotificationGateway):
    """Write each notice to a text stream (stdout by default)."""

    def __init__(self, pretty: bool = False, stream: TextIO | None = None) -> None:
        self.pretty = pretty
        self.stream = stream or sys.stdout
        self.count = 0
        self._lock = threading.Lock()

    def notify(self, recipient_email: str, notice: TransactionResult) -> None:
        data = {"recipient": recipient_email, "notice": to_dict(notice)}
        line = json.dumps(data, indent=2 if self.pretty else None, ensure_ascii=False)
        with self._lock:
            print(line, file=self.stream)
            self.count += 1
