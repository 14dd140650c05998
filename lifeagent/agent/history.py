"""
Bounded conversation history.
"""

from collections import deque

from lifeagent.models.agent import ChatRole, ChatTurn
from lifeagent.utils.exceptions import ValidationError


class ConversationHistory:
    """
    Deque of chat turns with explicit capacity and retain sizes.

    When an append pushes the length past `capacity`, the oldest turns are
    evicted until `retain` remain. A leading system turn is never evicted
    and counts toward `retain`.
    """

    def __init__(self, capacity: int = 20, retain: int = 16):
        if retain < 1 or retain > capacity:
            raise ValidationError(
                "History retain must be between 1 and capacity",
                context={"capacity": capacity, "retain": retain},
            )
        self.capacity = capacity
        self.retain = retain
        self._turns: deque[ChatTurn] = deque()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(self._turns)

    @property
    def turns(self) -> list[ChatTurn]:
        return list(self._turns)

    def append(self, role: ChatRole | str, content: str) -> None:
        self._turns.append(ChatTurn(role=ChatRole(role), content=content))
        if len(self._turns) > self.capacity:
            self._evict()

    def _evict(self) -> None:
        system = None
        if self._turns and self._turns[0].role == ChatRole.SYSTEM:
            system = self._turns.popleft()

        keep = self.retain - 1 if system is not None else self.retain
        while len(self._turns) > keep:
            self._turns.popleft()

        if system is not None:
            self._turns.appendleft(system)

    def messages(self) -> list[dict[str, str]]:
        return [turn.to_message() for turn in self._turns]

    def clear(self) -> None:
        self._turns.clear()
