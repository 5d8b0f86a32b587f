"""Test configuration for pytest."""

import json
import os
import tempfile
from urllib.parse import parse_qsl

# Keep the JSON error log out of the working tree
os.environ.setdefault(
    "RELAY_ERROR_LOG", os.path.join(tempfile.gettempdir(), "telegram_ai_relay_test_errors.log")
)

import httpx
import pytest

from telegram_ai_relay.completion_client import CompletionClient
from telegram_ai_relay.relay_service import RelayService
from telegram_ai_relay.telegram_client import TelegramClient

BOT_TOKEN = "test_bot_token"
AI_URL = "https://ai.example.test/v1/chat/completions"

RELAY_ENV_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_API_BASE_URL",
    "AI_BACKEND",
    "OPEN_AI",
    "AI_API_KEY",
    "AI_API_URL",
    "AI_MODEL",
    "REQUEST_TIMEOUT",
]


def make_update(update_id, text, chat_id=123456789):
    """Build a raw getUpdates entry carrying a text message."""
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id * 10,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": 987654321, "username": "testuser"},
            "text": text,
            "date": 1234567890,
        },
    }


class TelegramStub:
    """Fake Bot API served through httpx.MockTransport.

    ``batches`` is consumed one entry per getUpdates call; an entry is
    either a list of raw updates or an exception to raise.
    """

    def __init__(self):
        self.batches = []
        self.offsets = []
        self.sent = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.url.path.rsplit("/", 1)[-1]

        if method == "getUpdates":
            self.offsets.append(int(request.url.params["offset"]))
            batch = self.batches.pop(0) if self.batches else []
            if isinstance(batch, Exception):
                raise batch
            return httpx.Response(200, json={"ok": True, "result": batch})

        if method == "sendMessage":
            form = dict(parse_qsl(request.content.decode()))
            self.sent.append(form)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.sent)}})

        return httpx.Response(404, json={"ok": False, "error_code": 404, "description": "Not Found"})

    @property
    def sent_texts(self):
        return [form["text"] for form in self.sent]


class CompletionStub:
    """Fake chat completion endpoint.

    ``responses`` is consumed one entry per request: a list of candidate
    texts, an exception to raise, or a ready httpx.Response.
    """

    def __init__(self):
        self.responses = []
        self.requests = []
        self.headers = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        item = self.responses.pop(0) if self.responses else []
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=completion_body(item))

    @property
    def prompts(self):
        return [payload["messages"][0]["content"] for payload in self.requests]


def completion_body(candidates):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {"index": i, "message": {"role": "assistant", "content": text}, "finish_reason": "stop"}
            for i, text in enumerate(candidates)
        ],
    }


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove relay variables from the environment and run from an empty directory."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def mock_settings(clean_env):
    """Mock environment variables for settings."""
    clean_env.setenv("TELEGRAM_BOT_TOKEN", BOT_TOKEN)
    clean_env.setenv("OPEN_AI", "sk-test")
    return None


@pytest.fixture
def telegram_stub():
    return TelegramStub()


@pytest.fixture
def completion_stub():
    return CompletionStub()


@pytest.fixture
def telegram_client(telegram_stub):
    return TelegramClient(BOT_TOKEN, transport=httpx.MockTransport(telegram_stub.handler))


@pytest.fixture
def completion_client(completion_stub):
    return CompletionClient(
        AI_URL,
        model="gpt-3.5-turbo",
        api_key="sk-test",
        transport=httpx.MockTransport(completion_stub.handler),
    )


@pytest.fixture
def relay(telegram_client, completion_client):
    return RelayService(telegram_client, completion_client, poll_interval=0.01)
