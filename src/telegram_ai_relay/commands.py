"""Bot command parsing and the command menu offered to Telegram."""

START_COMMAND = "/start"

GREETING = "Chat with AI started. How can I help you?"

DEFAULT_COMMANDS = [
    {"command": "start", "description": "Start a chat with the AI"},
]


def extract_command(text: str) -> str:
    """Return the command token of ``text``.

    In groups Telegram suffixes commands with the bot username
    (``/start@my_bot``), so everything from the first ``@`` on is dropped.
    """
    return text.split("@", 1)[0]


def is_start_command(text: str) -> bool:
    return extract_command(text) == START_COMMAND


def get_bot_commands() -> list[dict[str, str]]:
    """Return the list of bot commands with descriptions."""
    return [dict(command) for command in DEFAULT_COMMANDS]
