"""Language-model client that produces typed architecture recommendations.

The model is asked for a JSON object but its reply is treated as untrusted
text: the first balanced JSON object is extracted, parsed, checked for the
required keys and validated against the recommendation model. Nothing is
retried here; failures surface as UpstreamModelError subclasses.
"""

import json
from collections.abc import Sequence
from enum import Enum

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    InvalidStructureError,
    MalformedJSONError,
    NoResponseError,
    UpstreamModelError,
)
from .models import ArchitectureRecommendation
from .providers import LLMProvider
from .types import HistoryEntry

REQUIRED_KEYS = ("services", "totalMonthlyCost", "architecture")
DEFAULT_OPTIMIZATION_GOALS = "Reduce costs while maintaining performance"

SYSTEM_PROMPT = """You are an AWS Solutions Architect assistant. Your role is to:
1. Analyze customer requirements for cloud infrastructure
2. Recommend appropriate AWS services and architectures
3. Provide accurate cost estimates
4. Generate CloudFormation templates
5. Suggest optimizations for cost and performance

Always answer with a single JSON object in the following format:
{
  "services": [
    {
      "name": "service name",
      "type": "service category",
      "monthlyCost": number (in USD),
      "description": "what this service does in the architecture",
      "configuration": {
        "instanceType": "t3.large",
        "storage": "100GB",
        "region": "us-east-1"
      }
    }
  ],
  "totalMonthlyCost": number,
  "architecture": {
    "tiers": [
      {
        "name": "Web Tier",
        "components": ["Application Load Balancer", "Auto Scaling Group", "EC2 instances"]
      }
    ]
  },
  "optimizations": [
    {
      "type": "Reserved Instances",
      "description": "Use reserved instances for predictable workloads",
      "savings": number (percentage)
    }
  ],
  "cloudFormationTemplate": "CloudFormation template as a string"
}

Base your recommendations on AWS best practices, Well-Architected Framework principles, and realistic pricing data."""

OPTIMIZE_PROMPT = """You are optimizing an existing AWS architecture.
Current architecture: {current}
Optimization goals: {goals}

Provide an optimized version that reduces costs while maintaining or improving performance and reliability.
Return the same JSON format as the original architecture."""


class RequestState(str, Enum):
    """Lifecycle of one model request."""

    IDLE = "idle"
    REQUESTING = "requesting"
    PARSED = "parsed"
    FAILED = "failed"


def extract_json_object(text: str) -> str:
    """Return the first balanced JSON object embedded in text.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards nesting.

    Raises:
        MalformedJSONError: If no opening brace exists or it is never closed.
    """
    start = text.find("{")
    if start == -1:
        raise MalformedJSONError("No JSON object found in model response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    raise MalformedJSONError("Unbalanced JSON object in model response")


def parse_recommendation(text: str | None) -> ArchitectureRecommendation:
    """Parse a model reply into a validated recommendation.

    Raises:
        NoResponseError: Reply is empty.
        MalformedJSONError: No JSON object could be extracted or parsed.
        InvalidStructureError: Required keys missing or payload has the wrong shape.
    """
    if not text or not text.strip():
        raise NoResponseError("No response from language model")

    raw = extract_json_object(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedJSONError(f"Model response is not valid JSON: {e}") from e

    missing = [key for key in REQUIRED_KEYS if data.get(key) is None]
    if missing:
        raise InvalidStructureError(
            f"Invalid response structure from model: missing {', '.join(missing)}"
        )

    try:
        recommendation = ArchitectureRecommendation.model_validate(data)
    except PydanticValidationError as e:
        raise InvalidStructureError(f"Invalid response structure from model: {e}") from e

    line_total = recommendation.line_item_total
    if abs(line_total - recommendation.total_monthly_cost) > 0.01:
        # The stated total is kept as-is; only flag the drift.
        logger.warning(
            "Stated total disagrees with line items",
            stated=recommendation.total_monthly_cost,
            line_items=line_total,
        )

    return recommendation


def build_messages(
    requirements: str,
    history: Sequence[HistoryEntry] = (),
    history_limit: int = 10,
) -> list[dict[str, str]]:
    """System prompt, the most recent history turns, then the new request."""
    recent = list(history)[-history_limit:] if history_limit else []
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        *({"role": turn["role"], "content": turn["content"]} for turn in recent),
        {"role": "user", "content": requirements},
    ]


class RecommendationClient:
    """Turns requirements into recommendations through an LLM provider."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        history_limit: int = 10,
        recommendation_temperature: float = 0.7,
        optimization_temperature: float = 0.5,
    ) -> None:
        self.provider = provider
        self.history_limit = history_limit
        self.recommendation_temperature = recommendation_temperature
        self.optimization_temperature = optimization_temperature
        self.state = RequestState.IDLE

    async def generate(
        self,
        requirements: str,
        history: Sequence[HistoryEntry] = (),
    ) -> ArchitectureRecommendation:
        """Recommend an architecture for the requirements given prior turns."""
        messages = build_messages(requirements, history, self.history_limit)
        return await self._request(messages, self.recommendation_temperature)

    async def optimize(
        self,
        current: ArchitectureRecommendation,
        goals: str | None = None,
    ) -> ArchitectureRecommendation:
        """Ask the model for an optimised version of an existing recommendation."""
        prompt = OPTIMIZE_PROMPT.format(
            current=current.model_dump_json(by_alias=True),
            goals=goals or DEFAULT_OPTIMIZATION_GOALS,
        )
        return await self._request([{"role": "user", "content": prompt}], self.optimization_temperature)

    async def _request(
        self,
        messages: list[dict[str, str]],
        temperature: float,
    ) -> ArchitectureRecommendation:
        self._transition(RequestState.REQUESTING)
        try:
            response = await self.provider.complete(messages, temperature=temperature, json_mode=True)
            recommendation = parse_recommendation(response.text)
        except UpstreamModelError as e:
            self._transition(RequestState.FAILED)
            logger.error(f"Error generating architecture recommendation: {e}")
            raise
        except Exception as e:
            self._transition(RequestState.FAILED)
            logger.error(f"Unexpected model error: {e}")
            raise UpstreamModelError(f"Failed to generate architecture recommendation: {e}") from e

        self._transition(RequestState.PARSED)
        if response.usage:
            logger.info(
                "Token usage",
                model=response.model,
                prompt_tokens=response.usage.get("prompt_tokens"),
                completion_tokens=response.usage.get("completion_tokens"),
                total_tokens=response.usage.get("total_tokens"),
            )
        return recommendation

    def _transition(self, state: RequestState) -> None:
        logger.debug(f"Recommendation request {self.state.value} -> {state.value}")
        self.state = state
