"""Chat service: sessions, recommendation turns and architecture downloads."""

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from .exceptions import NotFoundError, PersistenceError, ValidationError
from .exports import render_pricing_csv
from .models import ArchitectureLayout, ArchitectureRecommendation
from .pricing import format_usd, from_cents, to_cents
from .recommendation import RecommendationClient
from .storage import Repository
from .templates import coerce_service_lines, render_cloudformation, render_terraform
from .types import (
    ArchitectureRecord,
    EnrichedMessage,
    ExchangeResult,
    HealthStatus,
    HistoryEntry,
    SessionRecord,
)

MAX_CONTENT_LENGTH = 10000
TITLE_LENGTH = 50


def sanitize_content(content: str) -> str:
    """Sanitize and validate message content."""
    if not content or not content.strip():
        raise ValidationError("Message content is required")

    content = content.strip()

    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message content exceeds maximum length ({MAX_CONTENT_LENGTH} characters)"
        )
    if "\x00" in content:
        raise ValidationError("Null bytes not allowed")

    return content


def session_title(content: str) -> str:
    """Title derived from the first request of a session."""
    if len(content) > TITLE_LENGTH:
        return content[:TITLE_LENGTH] + "..."
    return content


def format_recommendation(recommendation: ArchitectureRecommendation) -> str:
    """Markdown summary shown as the assistant's reply."""
    tiers = "\n".join(
        f"• **{tier.name}**: {', '.join(tier.components)}"
        for tier in recommendation.architecture.tiers
    )
    services = "\n".join(
        f"• **{service.name}**: {format_usd(service.monthly_cost, detailed=True)}/month"
        f" - {service.description}"
        for service in recommendation.services
    )
    optimizations = "\n".join(
        f"• **{opt.type}**: {opt.description} ({opt.savings:g}% savings)"
        for opt in recommendation.optimizations
    )
    return (
        "Based on your requirements, I recommend the following AWS architecture:\n\n"
        f"**Architecture Overview:**\n{tiers}\n\n"
        f"**Services and Pricing:**\n{services}\n\n"
        f"**Total Estimated Cost**: {format_usd(recommendation.total_monthly_cost, detailed=True)}/month\n\n"
        f"**Optimization Opportunities:**\n{optimizations}"
    )


def recommendation_from_record(architecture: ArchitectureRecord) -> ArchitectureRecommendation:
    """Rebuild a recommendation from its persisted projection."""
    try:
        layout = ArchitectureLayout.model_validate(architecture["diagram"] or {})
    except PydanticValidationError:
        layout = ArchitectureLayout()

    return ArchitectureRecommendation(
        services=coerce_service_lines(architecture["services"]),
        total_monthly_cost=from_cents(architecture["total_cost"]),
        architecture=layout,
        optimizations=[],
        cloud_formation_template=architecture["cloudformation_template"] or "",
    )


@contextmanager
def _persisting(action: str) -> Iterator[None]:
    """Convert unexpected backend failures into PersistenceError."""
    try:
        yield
    except PersistenceError:
        raise
    except Exception as e:
        logger.error(f"Failed to {action}: {e}")
        raise PersistenceError(f"Failed to {action}: {e}") from e


class ChatService:
    """Chat service handling architecture conversations."""

    def __init__(
        self,
        repository: Repository,
        recommender: RecommendationClient,
        user_id: str = "demo_user",
        default_title: str = "New Architecture Discussion",
    ) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.recommender = recommender
        self.user_id = user_id
        self.default_title = default_title

    async def create_session(self, title: str | None = None) -> SessionRecord:
        with _persisting("create chat session"):
            return await self.repository.create_session(self.user_id, title or self.default_title)

    async def list_sessions(self) -> list[SessionRecord]:
        with _persisting("fetch chat sessions"):
            return await self.repository.list_sessions(self.user_id)

    async def get_messages(self, session_id: int) -> list[EnrichedMessage]:
        """Messages of a session; assistant messages carry their architecture."""
        await self._require_session(session_id)

        with _persisting("fetch messages"):
            messages = await self.repository.list_messages(session_id)
            enriched: list[EnrichedMessage] = []
            for message in messages:
                item: EnrichedMessage = {**message}  # type: ignore[typeddict-item]
                if message["role"] == "assistant":
                    item["architecture"] = await self.repository.get_architecture(message["id"])
                enriched.append(item)
        return enriched

    async def send_message(self, session_id: int, content: str) -> ExchangeResult:
        """Store a request, ask the model, and store its recommendation."""
        content = sanitize_content(content)
        await self._require_session(session_id)

        with _persisting("save message"):
            user_message = await self.repository.create_message(session_id, "user", content)
            previous = await self.repository.list_messages(session_id)

        history: list[HistoryEntry] = [
            {"role": m["role"], "content": m["content"]}
            for m in previous
            if m["id"] != user_message["id"]
        ]
        logger.debug("Requesting recommendation", session_id=session_id, history=len(history))

        # Nothing below runs unless the model produced a valid recommendation
        recommendation = await self.recommender.generate(content, history)
        services = [s.model_dump(by_alias=True) for s in recommendation.services]
        total_cents = to_cents(recommendation.total_monthly_cost)

        with _persisting("save recommendation"):
            ai_message = await self.repository.create_message(
                session_id,
                "assistant",
                format_recommendation(recommendation),
                {"hasArchitecture": True},
            )
            architecture = await self.repository.create_architecture(
                message_id=ai_message["id"],
                services=services,
                total_cost=total_cents,
                cloudformation_template=recommendation.cloud_formation_template or None,
                diagram=recommendation.architecture.model_dump(by_alias=True),
            )

            # Retitle only when this answer completes the first exchange
            if not history:
                await self.repository.update_session(session_id, session_title(content))

        logger.info(
            "Architecture recommended",
            session_id=session_id,
            message_id=ai_message["id"],
            services=len(recommendation.services),
            total_cost_cents=architecture["total_cost"],
        )

        return {
            "user_message": user_message,
            "ai_message": {**ai_message, "architecture": architecture},  # type: ignore[typeddict-item]
        }

    async def optimize(self, message_id: int, goals: str | None = None) -> ArchitectureRecommendation:
        """Optimised recommendation for a stored architecture; not persisted."""
        architecture = await self._require_architecture(message_id)
        return await self.recommender.optimize(recommendation_from_record(architecture), goals)

    async def cloudformation_template(self, message_id: int) -> str:
        architecture = await self._require_architecture(message_id)
        return render_cloudformation(
            architecture["services"], from_cents(architecture["total_cost"])
        )

    async def terraform_template(self, message_id: int) -> str:
        architecture = await self._require_architecture(message_id)
        return render_terraform(architecture["services"], from_cents(architecture["total_cost"]))

    async def pricing_csv(self, message_id: int) -> str:
        architecture = await self._require_architecture(message_id)
        return render_pricing_csv(architecture)

    async def health_check(self) -> HealthStatus:
        """Check health of all components."""
        logger.debug("Performing health checks")

        return {
            "storage": await self._check_storage_health(),
            "llm": await self._check_llm_health(),
        }

    async def _require_session(self, session_id: int) -> SessionRecord:
        with _persisting("fetch chat session"):
            session = await self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Chat session {session_id} not found")
        return session

    async def _require_architecture(self, message_id: int) -> ArchitectureRecord:
        with _persisting("fetch architecture"):
            architecture = await self.repository.get_architecture(message_id)
        if architecture is None:
            raise NotFoundError("Architecture not found")
        return architecture

    async def _check_storage_health(self) -> bool:
        try:
            return await self.repository.health_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Storage health check failed: {e}")
            return False

    async def _check_llm_health(self) -> bool:
        try:
            return await self.recommender.provider.health_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"LLM health check failed: {e}")
            return False
