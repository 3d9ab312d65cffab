"""Outbound send with retry (core domain).

Retry rules, in order:
1) Network timeouts are retried with exponential backoff until the elapsed
   budget runs out (``RetryConfig.max_elapsed``), then the send fails with
   ``RetryExhaustedError``.
2) A "payload too large" rejection swaps the message for a placeholder text
   and tries exactly once more.
3) Anything else is terminal and goes back to the relay.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from core.config import RetryConfig
from core.errors import PayloadTooLargeError, RetryExhaustedError, TransientSendError
from core.models import NativeId, OutboundMessage
from core.ports import MessengerPort

LOGGER = logging.getLogger(__name__)


class OutboundSender:
    """Wrap a destination messenger with the bridge's retry and fallback policy."""

    def __init__(
        self,
        messenger: MessengerPort,
        retry: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._messenger = messenger
        self._retry = retry or RetryConfig()
        self._sleep = sleep
        self._clock = clock

    async def send(self, destination: NativeId, message: OutboundMessage) -> NativeId:
        """Send ``message`` and return the destination-native message id."""

        try:
            return await self._send_with_backoff(destination, message)
        except PayloadTooLargeError as exc:
            LOGGER.warning("Payload too large for %s, sending placeholder: %s", destination, exc)

        # A second PayloadTooLargeError here is terminal.
        return await self._send_with_backoff(destination, message.as_fallback())

    async def _send_with_backoff(self, destination: NativeId, message: OutboundMessage) -> NativeId:
        started = self._clock()
        delay = self._retry.initial_delay
        attempts = 0
        while True:
            attempts += 1
            try:
                return await self._messenger.send(destination, message)
            except TransientSendError as exc:
                elapsed = self._clock() - started
                budget = self._retry.max_elapsed
                if budget is not None and elapsed + delay > budget:
                    raise RetryExhaustedError(attempts, exc) from exc
                LOGGER.info(
                    "Send to %s timed out (attempt %s), retrying in %.1fs",
                    destination,
                    attempts,
                    delay,
                )
                await self._sleep(delay)
                delay = min(delay * self._retry.multiplier, self._retry.max_delay)
