"""Matrix and Telegram client factories for mxtg-bridge.

We explicitly manage both clients' lifecycles (login, start, stop) in
``app.py`` so it is obvious when sessions are created and when they end.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from nio import AsyncClient, AsyncClientConfig, LoginError
from telegram.ext import AIORateLimiter, Application, ApplicationBuilder

from core.config import MatrixConfig

LOGGER = logging.getLogger(__name__)


def load_telegram_token() -> str:
    """Read the bot token via python-dotenv to keep secrets out of the repo."""

    load_dotenv()
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    # Fail fast on missing credentials instead of an obscure API error later.
    if not token:
        raise RuntimeError("Missing TELEGRAM_BOT_TOKEN in environment")
    return token


def build_telegram_application(token: str) -> Application:
    """Create the python-telegram-bot application.

    Outbound calls are paced by AIORateLimiter, and updates are handled
    concurrently so one slow relay never holds up the webhook queue.
    """

    LOGGER.info("Initializing Telegram application")
    return (
        ApplicationBuilder()
        .token(token)
        .rate_limiter(AIORateLimiter())
        .concurrent_updates(True)
        .build()
    )


def build_matrix_client(config: MatrixConfig) -> AsyncClient:
    """Create the nio client with its own retry loops turned off.

    Timeouts, connection errors and 429s surface on the first failure so the
    bridge's bounded backoff decides when to give up.
    """

    LOGGER.info("Initializing Matrix client for %s", config.user_id)
    client_config = AsyncClientConfig(
        max_timeouts=0,
        max_limit_exceeded=0,
        encryption_enabled=False,
    )
    return AsyncClient(config.homeserver, config.user_id, config=client_config)


def _read_device_id(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            device_id = handle.read().strip()
    except FileNotFoundError:
        return None
    return device_id or None


def _write_device_id(path: str, device_id: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(device_id)


async def login_matrix(client: AsyncClient, config: MatrixConfig) -> None:
    """Log in with an access token or password, reusing the persisted device id.

    Reusing the device id keeps the homeserver from accumulating a new device
    on every restart.
    """

    load_dotenv()
    device_id = _read_device_id(config.device_id_file)

    access_token = os.getenv("MATRIX_ACCESS_TOKEN")
    if access_token:
        client.access_token = access_token
        client.user_id = config.user_id
        if device_id:
            client.device_id = device_id
        LOGGER.info("Using access token for %s", config.user_id)
        return

    password = os.getenv("MATRIX_PASSWORD")
    if not password:
        raise RuntimeError("Missing MATRIX_PASSWORD or MATRIX_ACCESS_TOKEN in environment")

    if device_id:
        client.device_id = device_id
    response = await client.login(password, device_name=config.device_name)
    if isinstance(response, LoginError):
        raise RuntimeError(f"Matrix login failed: {response.message}")

    if response.device_id != device_id:
        _write_device_id(config.device_id_file, response.device_id)
    LOGGER.info("Logged in to Matrix as %s (device %s)", response.user_id, response.device_id)
