"""Application entry point for the mxtg bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telegram import Update
from telegram.ext import MessageHandler, filters

import settings
from adapters.matrix_gateway import MatrixGateway
from adapters.msgpack_store import MsgpackCorrespondenceStore
from adapters.telegram_gateway import TelegramGateway, make_update_handler, webhook_url
from client import build_matrix_client, build_telegram_application, load_telegram_token, login_matrix
from core.bridges import BridgeRegistry
from core.delivery import OutboundSender
from core.dispatch import TaskSpawner
from core.matrix_to_telegram import MatrixToTelegramRelay
from core.telegram_to_matrix import TelegramToMatrixRelay

NAME = "MXTG"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    # The webhook URL embeds the bot token, so httpx/PTB logs must be scrubbed.
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/mxtg.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


async def _serve(app_settings: settings.AppSettings) -> None:
    logger = logging.getLogger(__name__)

    registry = BridgeRegistry(app_settings.bridges)
    store = MsgpackCorrespondenceStore(app_settings.store)
    logger.info("%s bridges are loaded", len(registry))

    token = load_telegram_token()
    application = build_telegram_application(token)
    telegram = TelegramGateway(application.bot)

    matrix_client = build_matrix_client(app_settings.matrix)
    spawner = TaskSpawner()
    try:
        await login_matrix(matrix_client, app_settings.matrix)
        matrix = MatrixGateway(matrix_client)

        to_telegram = MatrixToTelegramRelay(
            registry,
            store,
            matrix,
            telegram,
            OutboundSender(telegram, app_settings.retry),
            bot_user_id=matrix.user_id,
        )
        to_matrix = TelegramToMatrixRelay(
            registry,
            store,
            telegram,
            matrix,
            OutboundSender(matrix, app_settings.retry),
        )

        # New messages only; edited messages are not bridged.
        application.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE, make_update_handler(to_matrix))
        )

        async with application:
            await application.start()
            telegram_cfg = app_settings.telegram
            # bootstrap_retries=-1 keeps retrying setWebhook until Telegram accepts it.
            await application.updater.start_webhook(
                listen=telegram_cfg.listen,
                port=telegram_cfg.port,
                url_path=token,
                webhook_url=webhook_url(telegram_cfg.webhook_url, token),
                allowed_updates=[Update.MESSAGE],
                bootstrap_retries=-1,
            )
            logger.info("Telegram webhook listening on %s:%s", telegram_cfg.listen, telegram_cfg.port)
            try:
                await matrix.listen(to_telegram, spawner, app_settings.matrix.sync_timeout_ms)
            finally:
                await spawner.cancel_all()
                await application.updater.stop()
                await application.stop()
    finally:
        await matrix_client.close()


def _run(config_path: str) -> None:
    _print_banner()
    app_settings = settings.load_settings(config_path)
    _configure_logging(app_settings.logging)
    logger = logging.getLogger(__name__)

    logger.info("Starting mxtg bridge")
    try:
        asyncio.run(_serve(app_settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


async def _history_sizes(store: MsgpackCorrespondenceStore, registry: BridgeRegistry) -> list[int]:
    return [len(await store.records(bridge.source_room_id)) for bridge in registry]


def _list_bridges(config_path: str) -> None:
    app_settings = settings.load_settings(config_path)
    registry = BridgeRegistry(app_settings.bridges)
    if not len(registry):
        print("No bridges configured.")
        return

    store = MsgpackCorrespondenceStore(app_settings.store)
    sizes = asyncio.run(_history_sizes(store, registry))
    for index, (bridge, size) in enumerate(zip(registry, sizes), start=1):
        print(f"{index}. {bridge.source_room_id} <-> {bridge.dest_chat_id} | {size} bridged messages")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="mxtg")
    parser.add_argument(
        "--config",
        default=settings.CONFIG_PATH,
        help="Path to config.json (default: project root)",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bridge")
    subparsers.add_parser(
        "bridges",
        help="Show configured bridges and the size of each message history.",
    )

    args = parser.parse_args(argv)
    if args.command == "bridges":
        _list_bridges(args.config)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
