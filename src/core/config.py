"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for transient send failures.

    ``max_elapsed=None`` retries until the destination accepts the message.
    """

    initial_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_elapsed: Optional[float] = 600.0


@dataclass(frozen=True)
class StoreConfig:
    """Where correspondence histories live and how many records each keeps."""

    directory: str = "bridged_messages"
    capacity: int = 1000


@dataclass(frozen=True)
class MatrixConfig:
    homeserver: str
    user_id: str
    device_name: str = "mxtg-bridge"
    device_id_file: str = "device_id"
    sync_timeout_ms: int = 10_000


@dataclass(frozen=True)
class TelegramConfig:
    webhook_url: str
    listen: str = "0.0.0.0"
    port: int = 8443
