"""Telegram Bot API client used by the relay loop."""

from typing import Any

import httpx
from pydantic import ValidationError

from .errors import DecodeError, TelegramAPIError, logger
from .models import Update, UpdatesEnvelope


class TelegramClient:
    """Client for the two Bot API calls the relay needs, plus command registration.

    Requests are made once; there is no retry. The relay loop's poll
    interval is the only retry mechanism.
    """

    def __init__(
        self,
        bot_token: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Telegram client.

        Args:
            bot_token: The Telegram bot token from @BotFather
            base_url: The base URL for Telegram API
            timeout: Timeout in seconds for every request
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.bot_token = bot_token
        self.base_url = f"{base_url.rstrip('/')}/bot{bot_token}"
        self._client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=2, max_connections=4),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _decode(self, response: httpx.Response) -> UpdatesEnvelope:
        try:
            return UpdatesEnvelope.model_validate(response.json())
        except ValueError as e:
            # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
            if isinstance(e, ValidationError):
                raise DecodeError(f"Unexpected getUpdates payload: {e.error_count()} error(s)") from e
            raise DecodeError(
                f"getUpdates returned non-JSON body (HTTP {response.status_code}): {response.text[:200]}"
            ) from e

    async def get_updates(self, offset: int) -> list[Update]:
        """Get pending updates from Telegram.

        Args:
            offset: Identifier of the first update to return

        Returns:
            Updates with ``update_id >= offset`` in delivery order

        Raises:
            httpx.HTTPError: on transport failure
            DecodeError: if the body is not a getUpdates envelope
            TelegramAPIError: if Telegram answered ``ok: false``
        """
        response = await self._client.get(
            f"{self.base_url}/getUpdates",
            params={"offset": offset},
        )
        envelope = self._decode(response)

        if not envelope.ok:
            raise TelegramAPIError(
                envelope.description or f"HTTP {response.status_code}",
                envelope.error_code,
            )

        updates = []
        for update in envelope.result:
            if update.update_id < offset:
                logger.debug(f"Dropping stale update {update.update_id} (offset {offset})")
                continue
            updates.append(update)
        return updates

    async def send_message(self, chat_id: int | str, text: str) -> str:
        """Send a plain text message to a chat.

        The body is form-encoded. Telegram-side errors (too long, chat not
        found, ...) come back in the returned body, not as exceptions.

        Args:
            chat_id: The chat ID to send to
            text: The message text

        Returns:
            The raw response body
        """
        response = await self._client.post(
            f"{self.base_url}/sendMessage",
            data={"chat_id": str(chat_id), "text": text},
        )
        body = response.text
        logger.info(f"Response from Telegram: {body}")
        return body

    async def _call_json(self, method: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.post(f"{self.base_url}/{method}", json=params or {})
        try:
            result = response.json()
        except ValueError as e:
            raise DecodeError(f"{method} returned non-JSON body (HTTP {response.status_code})") from e
        if not isinstance(result, dict):
            raise DecodeError(f"{method} returned unexpected payload: {result!r}")
        if not result.get("ok"):
            raise TelegramAPIError(result.get("description", "Unknown error"), result.get("error_code"))
        return result.get("result")

    async def get_my_commands(self) -> list[dict[str, Any]]:
        """Get the current list of bot commands."""
        result = await self._call_json("getMyCommands")
        return result if isinstance(result, list) else []

    async def set_my_commands(self, commands: list[dict[str, str]]) -> bool:
        """Set the list of bot commands shown in the Telegram menu."""
        return bool(await self._call_json("setMyCommands", {"commands": commands}))

    async def ensure_commands_set(self, commands: list[dict[str, str]], force: bool = False) -> bool:
        """Ensure bot commands are set, only setting if none exist or force=True.

        Returns:
            True if commands were set, False if already set or on failure
        """
        try:
            existing = await self.get_my_commands()
            if not existing or force:
                logger.info(f"Setting bot commands ({len(commands)} commands)")
                await self.set_my_commands(commands)
                return True
            else:
                logger.debug(f"Bot commands already set ({len(existing)} commands)")
                return False
        except (httpx.HTTPError, DecodeError, TelegramAPIError) as e:
            logger.warning(f"Failed to ensure bot commands: {e}")
            return False
