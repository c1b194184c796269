"""Architect API - conversational AWS architecture recommendations."""

__version__ = "1.0.0"

from .api import app, create_app  # noqa: E402
from .chat import ChatService  # noqa: E402
from .models import ArchitectureRecommendation, ServiceLine  # noqa: E402
from .pricing import calculate_service_cost  # noqa: E402
from .providers import create_llm_provider  # noqa: E402
from .recommendation import RecommendationClient  # noqa: E402
from .templates import render_cloudformation, render_terraform  # noqa: E402

__all__ = [
    "ArchitectureRecommendation",
    "ChatService",
    "RecommendationClient",
    "ServiceLine",
    "app",
    "calculate_service_cost",
    "create_app",
    "create_llm_provider",
    "render_cloudformation",
    "render_terraform",
]
