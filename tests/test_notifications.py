"""Tests for notification gateways, dispatcher and serialization."""

import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from unittest.mock import MagicMock, patch

import pytest

from transfer_core.clock import FixedClock
from transfer_core.exceptions import DeliveryError
from transfer_core.models import ParticipantView, TransactionResult
from transfer_core.notifications import ConsoleNotificationGateway, NotificationDispatcher
from transfer_core.notifications.serialization import serialize_value, to_dict

from tests.conftest import RecordingGateway

NOTICE = TransactionResult(
    transaction_id="tx-001",
    value=Decimal("40.00"),
    payer=ParticipantView("Alice Souza", "alice@example.com"),
    payee=ParticipantView("Bob Lima", "bob@example.com"),
    timestamp=datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc),
)


class _Color(str, Enum):
    RED = "RED"


@dataclass
class _Sample:
    amount: Decimal
    day: date


class TestSerialization:
    """Tests for payload serialization."""

    def test_notice_to_dict(self) -> None:
        data = to_dict(NOTICE)

        assert data["value"] == "40.00"
        assert data["payee"] == {"full_name": "Bob Lima", "email": "bob@example.com"}
        assert data["timestamp"] == "2024-06-15T12:00:00+00:00"

    def test_values(self) -> None:
        assert serialize_value(Decimal("0.10")) == "0.10"
        assert serialize_value(_Color.RED) == "RED"
        assert serialize_value([date(2024, 1, 2)]) == ["2024-01-02"]
        assert serialize_value({"a": _Sample(Decimal("1.00"), date(2024, 1, 1))}) == {
            "a": {"amount": "1.00", "day": "2024-01-01"}
        }

    def test_other_type(self) -> None:
        assert to_dict(42) == {"value": "42"}


class TestDispatcher:
    """Tests for NotificationDispatcher."""

    def test_delivers_to_payee(self) -> None:
        gateway = RecordingGateway()
        dispatcher = NotificationDispatcher(gateway, max_workers=2)

        assert dispatcher.dispatch(NOTICE).result(timeout=5) is True
        dispatcher.close()

        assert gateway.sent == [("bob@example.com", NOTICE)]
        assert dispatcher.stats.dispatched == 1
        assert dispatcher.stats.delivered == 1
        assert dispatcher.stats.success_rate == 1.0
        assert gateway.closed

    def test_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher = NotificationDispatcher(RecordingGateway(fail=True), max_workers=1)

        assert dispatcher.dispatch(NOTICE).result(timeout=5) is False
        dispatcher.close()

        assert dispatcher.stats.failed == 1
        assert dispatcher.stats.success_rate == 0.0
        assert "tx-001" in caplog.text

    def test_unexpected_error_is_contained(self) -> None:
        gateway = MagicMock()
        gateway.notify.side_effect = ConnectionResetError("peer reset")
        dispatcher = NotificationDispatcher(gateway, max_workers=1)

        assert dispatcher.dispatch(NOTICE).result(timeout=5) is False
        dispatcher.close()
        assert dispatcher.stats.failed == 1

    def test_dispatch_after_close_raises(self) -> None:
        dispatcher = NotificationDispatcher(RecordingGateway(), max_workers=1)
        dispatcher.close()

        with pytest.raises(RuntimeError):
            dispatcher.dispatch(NOTICE)


class TestConsoleGateway:
    """Tests for ConsoleNotificationGateway."""

    def test_writes_json_line(self) -> None:
        stream = io.StringIO()
        gateway = ConsoleNotificationGateway(stream=stream)

        gateway.notify("bob@example.com", NOTICE)

        data = json.loads(stream.getvalue())
        assert data["recipient"] == "bob@example.com"
        assert data["notice"]["transaction_id"] == "tx-001"
        assert gateway.count == 1

    def test_pretty(self) -> None:
        stream = io.StringIO()
        ConsoleNotificationGateway(pretty=True, stream=stream).notify("bob@example.com", NOTICE)
        assert "\n  " in stream.getvalue()


class TestKafkaGatewayMocked:
    """Tests for KafkaNotificationGateway using mocks (no actual Kafka connection)."""

    @patch("transfer_core.notifications.kafka.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        gateway = KafkaNotificationGateway("kafka:9092", topic="notices")

        assert gateway.config.bootstrap_servers == "kafka:9092"
        assert gateway.topic == "notices"
        config = mock_producer_class.call_args[0][0]
        assert config["bootstrap.servers"] == "kafka:9092"
        assert config["acks"] == "all"

    @patch("transfer_core.notifications.kafka.Producer")
    def test_notify_produces_event(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import EVENT_TYPE, KafkaNotificationGateway

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer
        gateway = KafkaNotificationGateway("localhost:9092")

        gateway.notify("bob@example.com", NOTICE)

        kwargs = mock_producer.produce.call_args.kwargs
        assert kwargs["topic"] == "transfers.notifications"
        assert kwargs["key"] == b"bob@example.com"
        event = json.loads(kwargs["value"].decode("utf-8"))
        assert event["event_type"] == EVENT_TYPE
        assert event["subject"] == "tx-001"
        assert event["data"]["value"] == "40.00"
        assert event["metadata"] == {"recipient": "bob@example.com"}
        assert gateway.stats.sent == 1
        mock_producer.poll.assert_called_once_with(0)

    @patch("transfer_core.notifications.kafka.Producer")
    def test_event_time_from_clock(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer
        clock = FixedClock(datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc))
        gateway = KafkaNotificationGateway("localhost:9092", clock=clock)

        assert gateway.build_event("bob@example.com", NOTICE).event_time == clock.now()

        gateway.notify("bob@example.com", NOTICE)
        event = json.loads(mock_producer.produce.call_args.kwargs["value"].decode("utf-8"))
        assert event["event_time"] == "2024-06-15T12:30:00+00:00"

    @patch("transfer_core.notifications.kafka.Producer")
    def test_full_queue_raises_delivery_error(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        mock_producer = MagicMock()
        mock_producer.produce.side_effect = BufferError("queue full")
        mock_producer_class.return_value = mock_producer
        gateway = KafkaNotificationGateway("localhost:9092")

        with pytest.raises(DeliveryError, match="queue full"):
            gateway.notify("bob@example.com", NOTICE)
        assert gateway.stats.sent == 0

    @patch("transfer_core.notifications.kafka.Producer")
    def test_delivery_callback(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        gateway = KafkaNotificationGateway("localhost:9092")
        msg = MagicMock()
        msg.topic.return_value = "transfers.notifications"
        msg.partition.return_value = 0
        msg.offset.return_value = 7

        gateway._delivery_callback(None, msg)
        gateway._delivery_callback("broker down", None)

        assert gateway.stats.delivered == 1
        assert gateway.stats.failed == 1

    @patch("transfer_core.notifications.kafka.Producer")
    def test_close_flushes(self, mock_producer_class: MagicMock) -> None:
        from transfer_core.notifications.kafka import KafkaNotificationGateway

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer
        KafkaNotificationGateway("localhost:9092").close()

        mock_producer.flush.assert_called_once_with(30.0)
