#!/usr/bin/env python3
"""
Telegram AI Relay Service

Polls Telegram for new messages and relays chat text to an AI completion
backend, sending the first generated reply back to the same chat.

A chat has to send /start before its messages are relayed. Activation is
tracked per chat and kept in memory only, as is the update cursor.

Usage:
    telegram-ai-relay --register-commands
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Awaitable, Optional, TypeVar

import httpx

from .commands import GREETING, get_bot_commands, is_start_command
from .completion_client import CompletionClient
from .config import POLL_INTERVAL, Settings, get_settings
from .errors import ConfigurationError, ErrorCategory, RelayError, log_relay_error
from .models import Update
from .sessions import ChatSessions
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures of a single step: logged, then the step is skipped
STEP_ERRORS = (httpx.HTTPError, RelayError)


class RelayStopped(Exception):
    """Raised inside the loop when stop() interrupts a pending call."""


class RelayService:
    """Relay loop between Telegram and the AI backend."""

    def __init__(
        self,
        telegram: TelegramClient,
        completion: CompletionClient,
        sessions: Optional[ChatSessions] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.telegram = telegram
        self.completion = completion
        self.sessions = sessions if sessions is not None else ChatSessions()
        self.poll_interval = poll_interval
        self.last_update_id = 0
        self.running = False
        self._stop_event = asyncio.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayService":
        telegram = TelegramClient(
            bot_token=settings.telegram_bot_token,
            base_url=settings.telegram_api_base_url,
            timeout=settings.request_timeout,
        )
        return cls(telegram, CompletionClient.from_settings(settings))

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to stop. Pending network calls are abandoned."""
        self._stop_event.set()

    async def _until_stopped(self, call: Awaitable[T]) -> T:
        """Await ``call`` unless stop() is requested first."""
        if self.stopped:
            if asyncio.iscoroutine(call):
                call.close()
            raise RelayStopped()

        task = asyncio.ensure_future(call)
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        await asyncio.gather(task, return_exceptions=True)
        raise RelayStopped()

    async def send_reply(self, chat_id: int, text: str) -> Optional[str]:
        """Send ``text`` to a chat. Failures are logged, not raised."""
        try:
            return await self._until_stopped(self.telegram.send_message(chat_id, text))
        except STEP_ERRORS as e:
            log_relay_error("send_reply", e, ErrorCategory.SEND, chat_id=chat_id)
            return None

    async def _relay_to_ai(self, chat_id: int, text: str) -> None:
        try:
            candidates = await self._until_stopped(self.completion.complete(text))
        except STEP_ERRORS as e:
            log_relay_error("complete", e, ErrorCategory.COMPLETION, chat_id=chat_id)
            return

        if not candidates:
            logger.info(f"AI backend returned no candidates for chat {chat_id}")
            return
        if len(candidates) > 1:
            # Only the first candidate is relayed; the rest are not used yet
            logger.debug(f"Using first of {len(candidates)} candidates for chat {chat_id}")

        await self.send_reply(chat_id, candidates[0])

    async def process_update(self, update: Update) -> None:
        """Handle one update and advance the cursor past it.

        The cursor moves whether or not the AI request or the reply
        succeeded. It does not move if stop() interrupts the update.
        """
        message = update.message
        if message is None:
            logger.debug(f"Update {update.update_id} carries no message, skipping")
        else:
            chat_id = message.chat.id
            text = message.text
            logger.info(f"Received message: {text}")

            if is_start_command(text):
                self.sessions.activate(chat_id)
                await self.send_reply(chat_id, GREETING)
            elif not text:
                logger.debug(f"Update {update.update_id} has no text, nothing to relay")
            elif self.sessions.is_active(chat_id):
                await self._relay_to_ai(chat_id, text)
            else:
                logger.debug(f"Chat {chat_id} has not sent /start, ignoring message")

        # Telegram may deliver a batch out of order; never move the cursor back
        self.last_update_id = max(self.last_update_id, update.update_id)

    async def poll_once(self) -> int:
        """Fetch one batch of updates and process it in order.

        Returns:
            Number of updates processed. 0 when the fetch failed, in which
            case the cursor is left untouched.
        """
        offset = self.last_update_id + 1
        try:
            updates = await self._until_stopped(self.telegram.get_updates(offset))
        except STEP_ERRORS as e:
            log_relay_error("get_updates", e, ErrorCategory.FETCH, offset=offset)
            return 0
        except RelayStopped:
            return 0

        if not updates:
            logger.debug("No new updates")
            return 0

        logger.info(f"Received {len(updates)} new update(s)")

        processed = 0
        for update in updates:
            if self.stopped:
                break
            try:
                await self.process_update(update)
            except RelayStopped:
                break
            processed += 1

        if processed < len(updates):
            logger.info(f"Stopped before update {updates[processed].update_id}; it will be fetched again")
        return processed

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def register_commands(self) -> bool:
        """Publish the /start command in the bot's Telegram menu."""
        commands = get_bot_commands()
        registered = await self.telegram.ensure_commands_set(commands)
        if registered:
            logger.info(f"Registered bot commands ({len(commands)} commands)")
        return registered

    async def close(self) -> None:
        await self.telegram.close()
        await self.completion.close()

    async def run(self, handle_signals: bool = True) -> None:
        """Run the relay until stop() is called or a shutdown signal arrives."""
        if self.running:
            raise RuntimeError("Relay is already running")
        self.running = True

        previous_handlers = {}
        if handle_signals:
            loop = asyncio.get_running_loop()

            # Handle graceful shutdown
            def signal_handler(signum: int, frame: Any) -> None:
                logger.info("Received shutdown signal")
                loop.call_soon_threadsafe(self.stop)

            for signum in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[signum] = signal.signal(signum, signal_handler)

        logger.info("Starting Telegram AI relay")
        logger.info(f"AI endpoint: {self.completion.api_url} (model {self.completion.model})")
        logger.info(f"Poll interval: {self.poll_interval}s")

        try:
            while not self.stopped:
                await self.poll_once()
                if self.stopped:
                    break
                await self._sleep()
        except asyncio.CancelledError:
            logger.info("Relay cancelled")
            raise
        finally:
            self.running = False
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            logger.info(
                f"Shutting down relay service (last update id: {self.last_update_id}, "
                f"active chats: {len(self.sessions)})"
            )
            await self.close()


async def async_main(settings: Settings, register_commands: bool = False) -> None:
    """Async entry point."""
    relay = RelayService.from_settings(settings)
    if register_commands:
        await relay.register_commands()
    await relay.run()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Relay Telegram chat messages to an AI completion backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the relay with settings from ./.env
  telegram-ai-relay

  # Use a different env file and publish /start in the bot menu
  telegram-ai-relay --env-file /etc/relay.env --register-commands

Environment variables:
  TELEGRAM_BOT_TOKEN  - Bot token (required)
  OPEN_AI             - API key for the hosted AI backend
  AI_BACKEND          - 'hosted' (default) or 'proxy'
  AI_API_URL          - Override the completion endpoint
  AI_MODEL            - Model name (default: gpt-3.5-turbo)
        """,
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file (default: ./.env)",
    )
    parser.add_argument(
        "--register-commands",
        action="store_true",
        help="Register /start in the Telegram command menu on startup",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        for handler in logging.getLogger("telegram_ai_relay").handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(logging.DEBUG)

    try:
        settings = get_settings(args.env_file)
    except ConfigurationError as e:
        log_relay_error("get_settings", e, ErrorCategory.CONFIG)
        sys.exit(1)

    asyncio.run(async_main(settings, register_commands=args.register_commands))


if __name__ == "__main__":
    main()
