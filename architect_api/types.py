"""Type definitions for the Architect API."""

from decimal import Decimal
from typing import Any, Literal

from typing_extensions import TypedDict

Role = Literal["user", "assistant"]


class TokenUsage(TypedDict, total=False):
    """Token usage information from LLM API."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost_usd: Decimal


class HealthStatus(TypedDict):
    """Health status of system components."""

    storage: bool
    llm: bool


class HistoryEntry(TypedDict):
    """A prior turn passed to the model as context."""

    role: str
    content: str


class SessionRecord(TypedDict):
    """Stored chat session."""

    id: int
    user_id: str
    title: str
    created_at: str
    updated_at: str


class MessageRecord(TypedDict):
    """Stored chat message."""

    id: int
    chat_session_id: int
    role: Role
    content: str
    metadata: dict[str, Any] | None
    created_at: str


class ArchitectureRecord(TypedDict):
    """Persisted projection of a recommendation; total_cost is in cents."""

    id: int
    message_id: int
    services: list[dict[str, Any]]
    total_cost: int
    cloudformation_template: str | None
    diagram: dict[str, Any] | None
    created_at: str


class EnrichedMessage(MessageRecord, total=False):
    """Message as returned to clients; assistant turns carry their architecture."""

    architecture: ArchitectureRecord | None


class ExchangeResult(TypedDict):
    """Result of one user request and the assistant's answer."""

    user_message: MessageRecord
    ai_message: EnrichedMessage
