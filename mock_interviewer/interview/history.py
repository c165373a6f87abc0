"""
Append-only dialogue history.
"""
from typing import Iterator, List, Tuple

from .models import Message, Role


class DialogueHistory:
    """Ordered log of exchanged messages. Entries are never edited or removed."""

    def __init__(self):
        self._messages: List[Message] = []

    def append(self, message: Message) -> int:
        """Append a message and return its position."""
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        self._messages.append(message)
        return len(self._messages) - 1

    def add(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        self.append(message)
        return message

    def snapshot(self) -> Tuple[Message, ...]:
        """Immutable view of the history as it is right now."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, idx: int) -> Message:
        return self._messages[idx]
