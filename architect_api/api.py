"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .chat import ChatService
from .config import settings
from .exceptions import (
    ArchitectAPIError,
    NotFoundError,
    PersistenceError,
    UpstreamModelError,
    ValidationError,
)
from .middleware import add_request_id
from .models import (
    ArchitectureRecommendation,
    CostEstimateRequest,
    CreateSessionRequest,
    OptimizeRequest,
    SendMessageRequest,
)
from .pricing import calculate_service_cost, get_all_services
from .providers import create_llm_provider
from .recommendation import RecommendationClient
from .storage import create_repository
from .types import EnrichedMessage, ExchangeResult, SessionRecord

_chat_service: ChatService | None = None


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "{extra[request_id]} | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def configure_logging() -> None:
    """Configure loguru sinks once, at startup."""
    logger.remove()
    # Records logged outside a request have no request id
    logger.configure(extra={"request_id": "-"})
    logger.add(sys.stderr, format=LOG_FORMAT, level=settings.log_level)
    if settings.log_file:
        logger.add(
            settings.log_file,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def get_limiter() -> Limiter:
    """Per-client limiter for the endpoints that call the model."""
    return Limiter(key_func=get_remote_address, storage_uri="memory://")


def create_chat_service() -> ChatService:
    """Wire repository, model provider and recommendation client from settings."""
    recommender = RecommendationClient(
        create_llm_provider(),
        history_limit=settings.history_limit,
        recommendation_temperature=settings.recommendation_temperature,
        optimization_temperature=settings.optimization_temperature,
    )
    return ChatService(
        repository=create_repository(),
        recommender=recommender,
        user_id=settings.demo_user_id,
        default_title=settings.default_session_title,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global _chat_service
    configure_logging()

    service = create_chat_service()
    await service.repository.startup()
    _chat_service = service

    logger.info("Application started successfully")

    yield

    await service.repository.shutdown()
    _chat_service = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="AWS Architect API",
    version=__version__,
    description="Conversational AWS architecture recommendations, cost estimates and IaC templates",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = get_limiter()
app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request validation errors with a plain error message."""
    error_messages = []

    for error in exc.errors():
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "; ".join(error_messages)},
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


def error_status(exc: ArchitectAPIError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, UpstreamModelError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, PersistenceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(ArchitectAPIError)
async def architect_api_exception_handler(request: Request, exc: ArchitectAPIError) -> JSONResponse:
    """Handle domain-specific errors."""
    status_code = error_status(exc)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc}")
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc)},
        headers={"X-Request-ID": getattr(request.state, "request_id", "")},
    )


def get_chat_service() -> ChatService:
    """Get chat service singleton."""
    if _chat_service is None:
        raise RuntimeError("Service not initialized")
    return _chat_service


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]


def attachment(content: str, media_type: str, filename: str) -> Response:
    """Downloadable response."""
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/chat-sessions", tags=["chat"])
async def create_session_endpoint(
    service: ChatServiceDep,
    body: CreateSessionRequest | None = Body(None),
) -> SessionRecord:
    """Create a chat session for the demo user."""
    return await service.create_session(body.title if body else None)


@app.get("/api/chat-sessions", tags=["chat"])
async def list_sessions_endpoint(service: ChatServiceDep) -> list[SessionRecord]:
    """List chat sessions, most recently updated first."""
    return await service.list_sessions()


@app.get("/api/chat-sessions/{session_id}/messages", tags=["chat"])
async def list_messages_endpoint(session_id: int, service: ChatServiceDep) -> list[EnrichedMessage]:
    """Messages of a session; assistant messages include their architecture."""
    return await service.get_messages(session_id)


@app.post("/api/chat-sessions/{session_id}/messages", tags=["chat"])
@limiter.limit(settings.rate_limit)
async def send_message_endpoint(
    request: Request,
    session_id: int,
    body: SendMessageRequest,
    service: ChatServiceDep,
) -> ExchangeResult:
    """Send requirements and receive an architecture recommendation."""
    return await service.send_message(session_id, body.content)


@app.post("/api/architectures/{message_id}/optimize", tags=["architectures"])
@limiter.limit(settings.rate_limit)
async def optimize_endpoint(
    request: Request,
    message_id: int,
    service: ChatServiceDep,
    body: OptimizeRequest | None = Body(None),
) -> ArchitectureRecommendation:
    """Optimised version of a stored architecture (not persisted)."""
    return await service.optimize(message_id, body.goals if body else None)


@app.get("/api/architectures/{message_id}/cloudformation", tags=["architectures"])
async def cloudformation_endpoint(message_id: int, service: ChatServiceDep) -> Response:
    """Download the CloudFormation template."""
    template = await service.cloudformation_template(message_id)
    return attachment(template, "application/json", "architecture-template.json")


@app.get("/api/architectures/{message_id}/pricing-csv", tags=["architectures"])
async def pricing_csv_endpoint(message_id: int, service: ChatServiceDep) -> Response:
    """Download the pricing breakdown as CSV."""
    csv_content = await service.pricing_csv(message_id)
    return attachment(csv_content, "text/csv", "aws-pricing-breakdown.csv")


@app.get("/api/architectures/{message_id}/terraform", tags=["architectures"])
async def terraform_endpoint(message_id: int, service: ChatServiceDep) -> Response:
    """Download the Terraform configuration."""
    template = await service.terraform_template(message_id)
    return attachment(template, "text/plain", "main.tf")


@app.get("/api/pricing/services", tags=["pricing"])
async def pricing_services_endpoint() -> dict[str, Any]:
    """The static pricing table."""
    return {
        key: {
            "name": pricing.name,
            "category": pricing.category,
            "unit": pricing.unit,
            "pricePerUnit": float(pricing.price_per_unit),
            "region": pricing.region,
            "configurations": {
                name: {"multiplier": float(option.multiplier), "description": option.description}
                for name, option in pricing.configurations.items()
            },
        }
        for key, pricing in get_all_services().items()
    }


@app.post("/api/pricing/estimate", tags=["pricing"])
async def pricing_estimate_endpoint(body: CostEstimateRequest) -> dict[str, Any]:
    """Monthly cost of one service configuration."""
    cost = calculate_service_cost(body.service, body.configuration, body.usage)
    return {
        "service": body.service,
        "configuration": body.configuration,
        "usage": body.usage,
        "monthlyCost": cost,
    }


@app.get("/health", tags=["health"])
async def health_endpoint(
    response: Response,
    service: ChatServiceDep,
    detailed: bool = Query(False, description="Include configuration details"),
) -> dict[str, Any]:
    """Check health status of all components."""
    component_status = await service.health_check()
    all_healthy = all(component_status.values())

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    result: dict[str, Any] = {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": component_status,
    }

    if detailed:
        result["version"] = __version__
        result["environment"] = {
            "llm_model": settings.llm_model,
            "database": settings.database_url.split(":", 1)[0],
            "rate_limit": settings.rate_limit,
        }

    return result


@app.get("/", tags=["health"])
async def root_endpoint() -> dict[str, str]:
    """API information endpoint."""
    return {
        "name": "AWS Architect API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


app.openapi_tags = [
    {"name": "chat", "description": "Chat sessions and recommendations"},
    {"name": "architectures", "description": "Template and pricing downloads"},
    {"name": "pricing", "description": "Static pricing table"},
    {"name": "health", "description": "Health checks"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
