from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Literal

Role = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ConversationHistory:
    """Bounded in-memory turn buffer, used when channel history is unavailable.

    Oldest turns are evicted first once ``max_size`` is exceeded.
    """

    def __init__(self, max_size: int = 10, turns: Iterable[ConversationTurn] = ()) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._turns: deque[ConversationTurn] = deque(maxlen=max_size)
        for turn in turns:
            self.append(turn)

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    def snapshot(self) -> list[ConversationTurn]:
        return list(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def formatted(self) -> str:
        return "\n".join(f"{turn.role}: {turn.content}" for turn in self._turns)
