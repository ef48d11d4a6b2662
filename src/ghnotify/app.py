"""Application entry point for the ghnotify agent."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import os
import signal
import sys
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

from ghnotify import settings
from ghnotify.adapters.desktop_notifier import DesktopNotifier
from ghnotify.adapters.desktop_toast import PlatformToastBackend
from ghnotify.adapters.github_client import GitHubClient
from ghnotify.adapters.json_settings import JsonSettingsStore
from ghnotify.adapters.keyring_credentials import KeyringCredentialStore
from ghnotify.adapters.resume_watcher import ResumeWatcher
from ghnotify.adapters.sound import CustomSoundPlayer
from ghnotify.adapters.speech import Pyttsx3SpeechBackend
from ghnotify.adapters.sqlite_storage import SQLiteStorage
from ghnotify.adapters.state_watcher import StateWatcher, config_fingerprint
from ghnotify.adapters.status import LoggingStatusSink
from ghnotify.core.config import validate_settings
from ghnotify.core.errors import CredentialError, SettingsError
from ghnotify.core.models import TrayState
from ghnotify.core.orchestrator import PollOrchestrator
from ghnotify.core.scheduling import AsyncioScheduler
from ghnotify.core.suppression import SuppressionPolicy

NAME = "GHNOTIFY"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks the GitHub token anywhere it shows up in a log line."""

    def __init__(self, secrets: list[str], fmt: str) -> None:
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")
        # Longest first, so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _redaction_values(token: Optional[str] = None) -> list[str]:
    load_dotenv()
    return [value for value in (token, os.getenv(settings.TOKEN_ENV_VAR)) if value]


def _log_file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", settings.DEFAULT_LOG_PATH)
    if not os.path.isabs(path):
        path = os.path.join(settings.DATA_DIR, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 1)),
        encoding="utf-8",
    )


def _configure_logging(token: Optional[str] = None) -> None:
    """Console logging plus an optional rotating file, from config.json["logging"]."""

    config = settings.logging_config()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_log_file_handler(file_cfg))
    if not handlers:
        return

    formatter = _RedactingFormatter(
        _redaction_values(token), fmt="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)


@dataclass
class Runtime:
    """Everything one agent process needs, built once and closed on exit."""

    orchestrator: PollOrchestrator
    remote: GitHubClient
    credentials: KeyringCredentialStore
    settings_store: JsonSettingsStore
    storage: SQLiteStorage
    suppression: SuppressionPolicy
    status: LoggingStatusSink
    sound: CustomSoundPlayer

    async def aclose(self) -> None:
        await self.orchestrator.aclose()
        await self.sound.aclose()
        await self.remote.aclose()


def _build_credentials() -> KeyringCredentialStore:
    return KeyringCredentialStore(settings.KEYRING_SERVICE, env_var=settings.TOKEN_ENV_VAR)


def _build_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def build_runtime() -> Runtime:
    credentials = _build_credentials()
    settings_store = JsonSettingsStore(settings.CONFIG_PATH)
    storage = _build_storage()
    suppression = SuppressionPolicy(settings_store, storage)
    status = LoggingStatusSink()
    remote = GitHubClient()
    sound = CustomSoundPlayer()
    notifier = DesktopNotifier(
        toast=PlatformToastBackend(),
        speech=Pyttsx3SpeechBackend(),
        sound=sound,
    )
    orchestrator = PollOrchestrator(
        remote=remote,
        credentials=credentials,
        settings_store=settings_store,
        seen_store=storage,
        suppression=suppression,
        notifier=notifier,
        status=status,
        scheduler=AsyncioScheduler(),
    )
    return Runtime(
        orchestrator=orchestrator,
        remote=remote,
        credentials=credentials,
        settings_store=settings_store,
        storage=storage,
        suppression=suppression,
        status=status,
        sound=sound,
    )


def _install_signal_handlers(runtime: Runtime, stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    orchestrator = runtime.orchestrator
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    if sys.platform == "win32":
        return
    # SIGUSR1 = "Check now", SIGUSR2 = "Pause/Resume polling", SIGHUP = reload config.
    loop.add_signal_handler(signal.SIGUSR1, orchestrator.request_poll)
    loop.add_signal_handler(signal.SIGUSR2, orchestrator.toggle_pause)
    loop.add_signal_handler(signal.SIGHUP, orchestrator.reload)


async def _run_agent() -> None:
    runtime = build_runtime()
    orchestrator = runtime.orchestrator
    stop = asyncio.Event()
    watcher = ResumeWatcher(orchestrator.handle_system_resume)
    state_watcher = StateWatcher(
        lambda: config_fingerprint(settings.CONFIG_PATH, runtime.storage),
        orchestrator.reload,
    )

    LOGGER.info("GitHub Notify starting")
    try:
        _install_signal_handlers(runtime, stop)
    except NotImplementedError:
        LOGGER.info("Signal handlers are not supported on this platform")

    orchestrator.restore_snooze()
    if not runtime.credentials.has_token():
        LOGGER.warning("No token configured. Run `ghnotify set-token` to start tracking")
    # Without a token every tick reports "unconfigured" until one is saved.
    orchestrator.start_polling()
    watcher.start()
    state_watcher.start()

    try:
        await stop.wait()
    finally:
        LOGGER.info("Shutting down")
        watcher.stop()
        state_watcher.stop()
        await runtime.aclose()


def _run() -> None:
    _print_banner()
    _configure_logging(_build_credentials().get_token())
    asyncio.run(_run_agent())


async def _check_once() -> int:
    runtime = build_runtime()
    try:
        await runtime.orchestrator.poll_now()
    finally:
        await runtime.aclose()
    print(runtime.status.tooltip)
    return 0 if runtime.status.state in (TrayState.NORMAL, TrayState.QUIET) else 1


async def _test_token(token: str) -> bool:
    remote = GitHubClient()
    try:
        result = await remote.test_connection(token)
    finally:
        await remote.aclose()
    print(result.message)
    return result.success


def _set_token() -> int:
    token = getpass.getpass("GitHub personal access token: ").strip()
    if not token:
        print("No token entered.")
        return 1
    if not asyncio.run(_test_token(token)):
        return 1
    try:
        _build_credentials().save_token(token)
    except CredentialError as exc:
        print(f"Could not save token: {exc}")
        return 1
    print("Token saved.")
    return 0


def _test_connection() -> int:
    token = _build_credentials().get_token()
    if not token:
        print("No token configured.")
        return 1
    return 0 if asyncio.run(_test_token(token)) else 1


def _snooze(minutes: float) -> int:
    storage = _build_storage()
    policy = SuppressionPolicy(JsonSettingsStore(settings.CONFIG_PATH), storage)
    try:
        until = policy.activate_snooze(minutes)
    except ValueError as exc:
        print(exc)
        return 1
    print(f"Notifications snoozed until {datetime.fromtimestamp(until):%H:%M}")
    return 0


def _unsnooze() -> int:
    storage = _build_storage()
    SuppressionPolicy(JsonSettingsStore(settings.CONFIG_PATH), storage).cancel_snooze()
    print("Snooze cancelled.")
    return 0


def _parse_config_value(raw: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _config(args: argparse.Namespace) -> int:
    store = JsonSettingsStore(settings.CONFIG_PATH)
    current = store.get_settings().to_dict()
    if args.config_command == "set":
        current[args.key] = _parse_config_value(args.value)
        try:
            store.save_settings(validate_settings(current))
        except SettingsError as exc:
            for problem in exc.problems:
                print(f"error: {problem}")
            return 1
        current = store.get_settings().to_dict()
    print(json.dumps(current, indent=2))
    return 0


def _prune(days: int) -> int:
    runtime = build_runtime()
    try:
        removed = runtime.orchestrator.prune_seen(days)
    finally:
        asyncio.run(runtime.aclose())
    print(f"Removed {removed} seen entries")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="ghnotify")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the background agent")
    subparsers.add_parser("check", help="Run one poll cycle and exit")
    subparsers.add_parser("set-token", help="Store a GitHub token in the OS keyring")
    subparsers.add_parser("test-connection", help="Check the stored token against GitHub")

    snooze = subparsers.add_parser("snooze", help="Suppress notifications for a while")
    snooze.add_argument("minutes", type=float)
    subparsers.add_parser("unsnooze", help="Cancel an active snooze")

    config = subparsers.add_parser("config", help="Show or change settings")
    config_sub = config.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Print current settings")
    config_set = config_sub.add_parser("set", help="Change one setting")
    config_set.add_argument("key")
    config_set.add_argument("value", help="JSON value, or a plain string")

    prune = subparsers.add_parser("prune", help="Drop old seen-set entries")
    prune.add_argument("--days", type=int, default=30)

    args = parser.parse_args(argv)
    if args.command in (None, "run"):
        _run()
        return

    _configure_logging()
    if args.command == "check":
        code = asyncio.run(_check_once())
    elif args.command == "set-token":
        code = _set_token()
    elif args.command == "test-connection":
        code = _test_connection()
    elif args.command == "snooze":
        code = _snooze(args.minutes)
    elif args.command == "unsnooze":
        code = _unsnooze()
    elif args.command == "config":
        code = _config(args)
    else:
        code = _prune(args.days)
    sys.exit(code)


if __name__ == "__main__":
    main()
