from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterable, Union

HISTORY_LIMIT = 10


class ChatStatus(str, Enum):
    IDLE = "idle"
    AWAITING_CLARIFICATION = "awaiting_clarification"


@dataclass(frozen=True, slots=True)
class UserTurn:
    role: ClassVar[str] = "user"
    content: str


@dataclass(frozen=True, slots=True)
class AssistantTurn:
    role: ClassVar[str] = "assistant"
    content: str


Turn = Union[UserTurn, AssistantTurn]


def turn_to_dict(turn: Turn) -> dict[str, str]:
    return {"role": turn.role, "content": turn.content}


def turn_from_dict(payload: dict[str, Any]) -> Turn:
    role = payload.get("role")
    content = str(payload.get("content") or "")
    if role == UserTurn.role:
        return UserTurn(content)
    if role == AssistantTurn.role:
        return AssistantTurn(content)
    raise ValueError(f"unknown_turn_role: {role!r}")


@dataclass(slots=True)
class ConversationRecord:
    chat_id: str
    turns: list[Turn] = field(default_factory=list)
    status: ChatStatus = ChatStatus.IDLE

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)
        if len(self.turns) > HISTORY_LIMIT:
            del self.turns[: len(self.turns) - HISTORY_LIMIT]

    def messages_payload(self) -> list[dict[str, str]]:
        return [turn_to_dict(turn) for turn in self.turns]

    @classmethod
    def from_storage(
        cls,
        chat_id: str,
        messages: Iterable[dict[str, Any]] | None,
        status: str | None,
    ) -> "ConversationRecord":
        turns: list[Turn] = []
        for item in messages or []:
            if isinstance(item, dict):
                try:
                    turns.append(turn_from_dict(item))
                except ValueError:
                    continue
        record = cls(chat_id=chat_id, turns=turns[-HISTORY_LIMIT:])
        try:
            record.status = ChatStatus(status or ChatStatus.IDLE.value)
        except ValueError:
            record.status = ChatStatus.IDLE
        return record
