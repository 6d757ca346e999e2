"""Configuration management for transfer-core."""

import os
from dataclasses import dataclass, field
from typing import Any

from transfer_core.exceptions import ConfigurationError

NOTIFICATION_BACKENDS = ("console", "kafka", "none")
LOG_FORMATS = ("standard", "json")


@dataclass
class TransferConfig:
    """Transfer engine behaviour."""

    max_conflict_retries: int = 3

    def __post_init__(self) -> None:
        if self.max_conflict_retries < 0:
            raise ConfigurationError("max_conflict_retries cannot be negative")


@dataclass
class AuthorizationConfig:
    """External authorization check.

    When ``enabled`` is False the external check is not consulted at all.
    When enabled but the gateway is missing or unavailable, ``fail_open``
    decides the outcome; the default denies the transfer.
    """

    enabled: bool = False
    fail_open: bool = False


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class NotificationConfig:
    """Payee notification delivery."""

    backend: str = "console"
    topic: str = "transfers.notifications"
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.backend not in NOTIFICATION_BACKENDS:
            raise ConfigurationError(
                f"Unknown notification backend {self.backend!r}, expected one of {NOTIFICATION_BACKENDS}"
            )
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "transfers"
    user: str = "postgres"
    password: str = "postgres"
    lock_timeout_ms: int = 5000

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class TransferCoreConfig:
    """Main configuration for transfer-core."""

    transfer: TransferConfig = field(default_factory=TransferConfig)
    authorization: AuthorizationConfig = field(default_factory=AuthorizationConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    def __post_init__(self) -> None:
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"Unknown log format {self.log_format!r}")

    @classmethod
    def from_env(cls) -> "TransferCoreConfig":
        """Create config from environment variables."""
        transfer = TransferConfig(
            max_conflict_retries=_env_int("TRANSFER_MAX_CONFLICT_RETRIES", 3),
        )

        authorization = AuthorizationConfig(
            enabled=_env_bool("AUTHORIZATION_ENABLED", False),
            fail_open=_env_bool("AUTHORIZATION_FAIL_OPEN", False),
        )

        notification = NotificationConfig(
            backend=os.getenv("NOTIFICATION_BACKEND", "console"),
            topic=os.getenv("NOTIFICATION_TOPIC", "transfers.notifications"),
            max_workers=_env_int("NOTIFICATION_MAX_WORKERS", 4),
        )

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_env_int("POSTGRES_PORT", 5432),
            database=os.getenv("POSTGRES_DB", "transfers"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            lock_timeout_ms=_env_int("POSTGRES_LOCK_TIMEOUT_MS", 5000),
        )

        return cls(
            transfer=transfer,
            authorization=authorization,
            notification=notification,
            kafka=kafka,
            postgres=postgres,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")
