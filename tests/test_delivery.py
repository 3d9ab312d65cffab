from __future__ import annotations

import asyncio

import pytest

from core.config import RetryConfig
from core.delivery import OutboundSender
from core.errors import PayloadTooLargeError, RetryExhaustedError, SendError, TransientSendError
from core.models import MessageKind, OutboundMessage


class ScriptedMessenger:
    """Raise the scripted errors in order, then succeed."""

    def __init__(self, outcomes: list) -> None:
        self._outcomes = list(outcomes)
        self.sent: list[tuple[object, OutboundMessage]] = []

    async def send(self, destination, message: OutboundMessage):
        self.sent.append((destination, message))
        outcome = self._outcomes.pop(0) if self._outcomes else 1000 + len(self.sent)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _sender(messenger, clock: FakeClock, retry: "RetryConfig | None" = None) -> OutboundSender:
    return OutboundSender(messenger, retry or RetryConfig(), sleep=clock.sleep, clock=clock)


def _photo() -> OutboundMessage:
    return OutboundMessage(
        kind=MessageKind.PHOTO,
        text="(from alice\nlook)",
        payload=b"x" * 10,
        file_name="photo.jpg",
        mimetype="image/jpeg",
        reply_target=77,
    )


def test_timeouts_are_retried_until_success() -> None:
    messenger = ScriptedMessenger([TransientSendError("t1"), TransientSendError("t2"), 42])
    clock = FakeClock()

    result = asyncio.run(_sender(messenger, clock).send(555, OutboundMessage(MessageKind.TEXT, "hi")))

    assert result == 42
    assert len(messenger.sent) == 3
    assert clock.sleeps == [0.5, 1.0]


def test_backoff_delay_is_capped() -> None:
    messenger = ScriptedMessenger([TransientSendError("t")] * 4 + [7])
    clock = FakeClock()
    retry = RetryConfig(initial_delay=1.0, multiplier=3.0, max_delay=5.0, max_elapsed=None)

    asyncio.run(_sender(messenger, clock, retry).send(555, OutboundMessage(MessageKind.TEXT, "hi")))

    assert clock.sleeps == [1.0, 3.0, 5.0, 5.0]


def test_payload_too_large_sends_placeholder_once() -> None:
    messenger = ScriptedMessenger([PayloadTooLargeError("413"), 9])
    clock = FakeClock()

    result = asyncio.run(_sender(messenger, clock).send(555, _photo()))

    assert result == 9
    assert len(messenger.sent) == 2
    fallback = messenger.sent[1][1]
    assert fallback.kind is MessageKind.TEXT
    assert fallback.text == "this message cannot be displayed"
    assert fallback.payload == b""
    assert fallback.reply_target == 77
    assert clock.sleeps == []


def test_placeholder_rejected_too_is_terminal() -> None:
    messenger = ScriptedMessenger([PayloadTooLargeError("413"), PayloadTooLargeError("413 again")])
    clock = FakeClock()

    with pytest.raises(PayloadTooLargeError):
        asyncio.run(_sender(messenger, clock).send(555, _photo()))
    assert len(messenger.sent) == 2


def test_other_send_errors_are_not_retried() -> None:
    messenger = ScriptedMessenger([SendError("chat not found")])
    clock = FakeClock()

    with pytest.raises(SendError):
        asyncio.run(_sender(messenger, clock).send(555, OutboundMessage(MessageKind.TEXT, "hi")))
    assert len(messenger.sent) == 1
    assert clock.sleeps == []


def test_retry_budget_exhaustion_raises() -> None:
    messenger = ScriptedMessenger([TransientSendError("t")] * 100)
    clock = FakeClock()
    retry = RetryConfig(initial_delay=1.0, multiplier=2.0, max_delay=4.0, max_elapsed=10.0)

    with pytest.raises(RetryExhaustedError) as excinfo:
        asyncio.run(_sender(messenger, clock, retry).send(555, OutboundMessage(MessageKind.TEXT, "hi")))

    # Sleeps 1 + 2 + 4 = 7s; the next 4s wait would pass the 10s budget.
    assert clock.sleeps == [1.0, 2.0, 4.0]
    assert excinfo.value.attempts == 4
    assert isinstance(excinfo.value.last_error, TransientSendError)


def test_timeouts_during_placeholder_send_are_retried() -> None:
    messenger = ScriptedMessenger([PayloadTooLargeError("413"), TransientSendError("t"), 11])
    clock = FakeClock()

    result = asyncio.run(_sender(messenger, clock).send(555, _photo()))

    assert result == 11
    assert [message.kind for _, message in messenger.sent] == [
        MessageKind.PHOTO,
        MessageKind.TEXT,
        MessageKind.TEXT,
    ]
