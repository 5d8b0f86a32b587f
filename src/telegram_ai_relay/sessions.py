"""Per-chat conversation state."""


class ChatSessions:
    """Tracks which chats have sent ``/start``.

    Unseen chats are not started. State lives in memory only and is lost
    on restart.
    """

    def __init__(self):
        self._active: dict[int, bool] = {}

    def is_active(self, chat_id: int) -> bool:
        return self._active.get(chat_id, False)

    def activate(self, chat_id: int) -> None:
        self._active[chat_id] = True

    def active_chats(self) -> list[int]:
        return [chat_id for chat_id, active in self._active.items() if active]

    def __len__(self) -> int:
        return len(self.active_chats())
