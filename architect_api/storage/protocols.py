"""Storage protocol definitions using typing.Protocol."""

from typing import Any, Protocol

from ..types import ArchitectureRecord, MessageRecord, Role, SessionRecord


class Repository(Protocol):
    """Repository protocol for sessions, messages and architectures."""

    async def startup(self) -> None:
        """Initialize repository on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup repository on shutdown."""
        ...

    async def health_check(self) -> bool:
        """Check if repository is healthy."""
        ...

    async def create_session(self, user_id: str, title: str) -> SessionRecord: ...

    async def get_session(self, session_id: int) -> SessionRecord | None: ...

    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        """Sessions for a user, most recently updated first."""
        ...

    async def update_session(self, session_id: int, title: str) -> SessionRecord | None: ...

    async def create_message(
        self,
        session_id: int,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> MessageRecord: ...

    async def list_messages(self, session_id: int) -> list[MessageRecord]:
        """Messages of a session in creation order."""
        ...

    async def create_architecture(
        self,
        message_id: int,
        services: list[dict[str, Any]],
        total_cost: int,
        cloudformation_template: str | None = None,
        diagram: dict[str, Any] | None = None,
    ) -> ArchitectureRecord: ...

    async def get_architecture(self, message_id: int) -> ArchitectureRecord | None:
        """Architecture answering the given assistant message."""
        ...
