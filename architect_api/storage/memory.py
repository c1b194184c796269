"""In-memory repository implementation."""

import copy
from datetime import UTC, datetime
from itertools import count
from typing import Any

from loguru import logger

from ..types import ArchitectureRecord, MessageRecord, Role, SessionRecord


def _now() -> str:
    return datetime.now(UTC).isoformat()


class InMemoryRepository:
    """Dict-backed repository; contents are lost on shutdown.

    Records are copied on the way in and out so callers cannot mutate
    stored state.
    """

    def __init__(self) -> None:
        self.sessions: dict[int, SessionRecord] = {}
        self.messages: dict[int, MessageRecord] = {}
        self.architectures: dict[int, ArchitectureRecord] = {}
        self._session_ids = count(1)
        self._message_ids = count(1)
        self._architecture_ids = count(1)

    async def startup(self) -> None:
        logger.info("In-memory repository initialized")

    async def shutdown(self) -> None:
        self.sessions.clear()
        self.messages.clear()
        self.architectures.clear()

    async def health_check(self) -> bool:
        return True

    async def create_session(self, user_id: str, title: str) -> SessionRecord:
        now = _now()
        session: SessionRecord = {
            "id": next(self._session_ids),
            "user_id": user_id,
            "title": title,
            "created_at": now,
            "updated_at": now,
        }
        self.sessions[session["id"]] = session
        return dict(session)  # type: ignore[return-value]

    async def get_session(self, session_id: int) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        return dict(session) if session else None  # type: ignore[return-value]

    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        sessions = [dict(s) for s in self.sessions.values() if s["user_id"] == user_id]
        # ids break ties between sessions touched within the same clock tick
        sessions.sort(key=lambda s: (s["updated_at"], s["id"]), reverse=True)
        return sessions  # type: ignore[return-value]

    async def update_session(self, session_id: int, title: str) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        session["title"] = title
        session["updated_at"] = _now()
        return dict(session)  # type: ignore[return-value]

    async def create_message(
        self,
        session_id: int,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> MessageRecord:
        message: MessageRecord = {
            "id": next(self._message_ids),
            "chat_session_id": session_id,
            "role": role,
            "content": content,
            "metadata": copy.deepcopy(metadata),
            "created_at": _now(),
        }
        self.messages[message["id"]] = message
        return copy.deepcopy(message)

    async def list_messages(self, session_id: int) -> list[MessageRecord]:
        return [
            copy.deepcopy(m)
            for m in sorted(self.messages.values(), key=lambda m: m["id"])
            if m["chat_session_id"] == session_id
        ]

    async def create_architecture(
        self,
        message_id: int,
        services: list[dict[str, Any]],
        total_cost: int,
        cloudformation_template: str | None = None,
        diagram: dict[str, Any] | None = None,
    ) -> ArchitectureRecord:
        architecture: ArchitectureRecord = {
            "id": next(self._architecture_ids),
            "message_id": message_id,
            "services": copy.deepcopy(services),
            "total_cost": total_cost,
            "cloudformation_template": cloudformation_template,
            "diagram": copy.deepcopy(diagram),
            "created_at": _now(),
        }
        self.architectures[architecture["id"]] = architecture
        return copy.deepcopy(architecture)

    async def get_architecture(self, message_id: int) -> ArchitectureRecord | None:
        for architecture in self.architectures.values():
            if architecture["message_id"] == message_id:
                return copy.deepcopy(architecture)
        return None
