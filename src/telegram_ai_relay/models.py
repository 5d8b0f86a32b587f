"""Wire models for the Telegram Bot API and the chat completion API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Chat(BaseModel):
    """Destination of a reply."""

    model_config = ConfigDict(extra="ignore")

    id: int


class Message(BaseModel):
    """A Telegram message. Only text messages carry anything the relay uses."""

    model_config = ConfigDict(extra="ignore")

    message_id: Optional[int] = None
    text: str = ""
    chat: Chat


class Update(BaseModel):
    """An inbound event; ``update_id`` is the polling cursor."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    # Edits, callback queries and channel posts arrive without a message
    message: Optional[Message] = None


class UpdatesEnvelope(BaseModel):
    """Body returned by ``getUpdates``."""

    model_config = ConfigDict(extra="ignore")

    ok: bool
    result: list[Update] = Field(default_factory=list)
    description: Optional[str] = None
    error_code: Optional[int] = None


class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    model: str
    stream: bool = False
    messages: list[ChatMessage]


class Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: ChatMessage


class ChatCompletionResponse(BaseModel):
    """Completion body. Every choice is kept, in the order the backend sent them."""

    model_config = ConfigDict(extra="ignore")

    choices: list[Choice] = Field(default_factory=list)
    error: Optional[Any] = None

    def candidates(self) -> list[str]:
        return [choice.message.content or "" for choice in self.choices]
