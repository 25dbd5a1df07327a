from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import Message


class MessageCursor:
    """Replayable position over a fixed, ordered list of messages.

    Only the position moves; the list itself is never modified.
    """

    def __init__(self, messages: Sequence[Message]):
        self._messages: List[Message] = list(messages)
        self._position = 0

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def position(self) -> int:
        return self._position

    def has_next(self) -> bool:
        return self._position < len(self._messages)

    def peek(self) -> Optional[Message]:
        """Next message without consuming it."""
        if not self.has_next():
            return None
        return self._messages[self._position]

    def advance(self) -> Optional[Message]:
        """Consume and return the next message."""
        msg = self.peek()
        if msg is not None:
            self._position += 1
        return msg

    def rewind(self) -> None:
        self._position = 0

    def find(self, message_id: int) -> Optional[Message]:
        for msg in self._messages:
            if msg.message_id == message_id:
                return msg
        return None

    def rewind_to(self, message_id: int) -> bool:
        """
        Reposition just past the message carrying ``message_id``.

        The whole list is searched, not only the unsent tail. Unknown ids
        leave the position where it was.

        Returns:
            True if the message was found and the cursor moved
        """
        target = self.find(message_id)
        if target is None:
            return False

        self.rewind()
        while self.has_next():
            if self.advance() is target:
                break
        return True
