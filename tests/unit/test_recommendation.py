"""Tests for model reply parsing and the recommendation client."""

import json

import pytest
from mock_provider import MockProvider, recommendation_json

from architect_api.exceptions import (
    InvalidStructureError,
    LLMProviderError,
    MalformedJSONError,
    NoResponseError,
    UpstreamModelError,
)
from architect_api.models import ArchitectureRecommendation
from architect_api.recommendation import (
    DEFAULT_OPTIMIZATION_GOALS,
    SYSTEM_PROMPT,
    RecommendationClient,
    RequestState,
    build_messages,
    extract_json_object,
    parse_recommendation,
)


class TestExtractJsonObject:
    """Test JSON object extraction from free text."""

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == '{"a": 1}'

    def test_surrounding_prose_and_fences(self):
        text = 'Here is the design:\n```json\n{"a": {"b": 2}}\n```\nLet me know!'
        assert extract_json_object(text) == '{"a": {"b": 2}}'

    def test_braces_inside_strings(self):
        text = 'x {"t": "a } b { c", "q": "say \\"}\\""} trailing }'
        assert json.loads(extract_json_object(text)) == {"t": "a } b { c", "q": 'say "}"'}

    def test_first_object_only(self):
        assert extract_json_object('{"a": 1} {"b": 2}') == '{"a": 1}'

    def test_no_object(self):
        with pytest.raises(MalformedJSONError):
            extract_json_object("no json here")

    def test_unbalanced(self):
        with pytest.raises(MalformedJSONError):
            extract_json_object('{"a": {"b": 1}')


class TestParseRecommendation:
    """Test reply validation."""

    def test_valid_reply(self):
        recommendation = parse_recommendation(recommendation_json())

        assert isinstance(recommendation, ArchitectureRecommendation)
        assert recommendation.total_monthly_cost == 120.0
        assert [s.name for s in recommendation.services] == ["Amazon EC2", "Amazon RDS", "Amazon S3"]
        assert recommendation.services[0].monthly_cost == 70.0
        assert recommendation.architecture.tiers[0].name == "Web Tier"
        assert recommendation.optimizations[0].savings == 30

    def test_reply_wrapped_in_prose(self):
        recommendation = parse_recommendation(f"Sure!\n{recommendation_json()}\nThanks")
        assert len(recommendation.services) == 3

    def test_optional_fields_default(self):
        payload = {"services": [], "totalMonthlyCost": 0, "architecture": {"tiers": []}}
        recommendation = parse_recommendation(json.dumps(payload))

        assert recommendation.optimizations == []
        assert recommendation.cloud_formation_template == ""

    def test_template_object_is_serialized(self):
        recommendation = parse_recommendation(
            recommendation_json(cloudFormationTemplate={"Resources": {}})
        )
        assert json.loads(recommendation.cloud_formation_template) == {"Resources": {}}

    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_empty_reply(self, text):
        with pytest.raises(NoResponseError):
            parse_recommendation(text)

    def test_malformed_json(self):
        with pytest.raises(MalformedJSONError):
            parse_recommendation("{services: [}")

    @pytest.mark.parametrize("key", ["services", "totalMonthlyCost", "architecture"])
    def test_missing_required_key(self, key):
        payload = json.loads(recommendation_json())
        del payload[key]

        with pytest.raises(InvalidStructureError, match=key):
            parse_recommendation(json.dumps(payload))

    def test_null_required_key(self):
        with pytest.raises(InvalidStructureError):
            parse_recommendation(recommendation_json(totalMonthlyCost=None))

    def test_wrong_shape(self):
        with pytest.raises(InvalidStructureError):
            parse_recommendation(recommendation_json(services="EC2 and RDS"))

    def test_stated_total_kept_when_inconsistent(self):
        recommendation = parse_recommendation(recommendation_json(total=999.0))

        assert recommendation.total_monthly_cost == 999.0
        assert recommendation.line_item_total == 120.0

    def test_failures_are_upstream_errors(self):
        with pytest.raises(UpstreamModelError):
            parse_recommendation("nothing useful")


class TestBuildMessages:
    """Test prompt assembly."""

    def test_system_history_then_request(self):
        history = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "answer"},
        ]
        messages = build_messages("second", history)

        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert messages[1:] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "answer"},
            {"role": "user", "content": "second"},
        ]

    def test_history_window(self):
        history = [{"role": "user", "content": str(i)} for i in range(15)]
        messages = build_messages("new", history, history_limit=10)

        assert [m["content"] for m in messages[1:-1]] == [str(i) for i in range(5, 15)]

    def test_zero_history_limit(self):
        messages = build_messages("new", [{"role": "user", "content": "old"}], history_limit=0)
        assert len(messages) == 2


class TestRecommendationClient:
    """Test the client state machine and provider calls."""

    @pytest.mark.asyncio
    async def test_generate(self):
        provider = MockProvider()
        client = RecommendationClient(provider, recommendation_temperature=0.7)

        assert client.state is RequestState.IDLE
        recommendation = await client.generate("A web app for 10k users")

        assert recommendation.total_monthly_cost == 120.0
        assert client.state is RequestState.PARSED
        assert provider.call_count == 1
        call = provider.calls[0]
        assert call["temperature"] == 0.7
        assert call["json_mode"] is True
        assert call["messages"][-1] == {"role": "user", "content": "A web app for 10k users"}

    @pytest.mark.asyncio
    async def test_generate_with_history(self):
        provider = MockProvider()
        client = RecommendationClient(provider, history_limit=1)

        await client.generate(
            "cheaper please",
            [{"role": "user", "content": "old"}, {"role": "assistant", "content": "reply"}],
        )

        assert [m["content"] for m in provider.calls[0]["messages"][1:]] == ["reply", "cheaper please"]

    @pytest.mark.asyncio
    async def test_generate_invalid_reply(self):
        provider = MockProvider()
        provider.set_response("I cannot help with that.")
        client = RecommendationClient(provider)

        with pytest.raises(MalformedJSONError):
            await client.generate("anything")
        assert client.state is RequestState.FAILED

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self):
        provider = MockProvider()
        provider.set_failure()
        client = RecommendationClient(provider)

        with pytest.raises(LLMProviderError):
            await client.generate("anything")
        assert client.state is RequestState.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self):
        class BrokenProvider(MockProvider):
            async def complete(self, messages, **kwargs):
                raise RuntimeError("socket closed")

        client = RecommendationClient(BrokenProvider())

        with pytest.raises(UpstreamModelError, match="socket closed"):
            await client.generate("anything")

    @pytest.mark.asyncio
    async def test_optimize_uses_default_goals(self):
        provider = MockProvider()
        client = RecommendationClient(provider, optimization_temperature=0.5)
        current = parse_recommendation(recommendation_json())

        await client.optimize(current)

        call = provider.calls[0]
        assert call["temperature"] == 0.5
        assert len(call["messages"]) == 1
        prompt = call["messages"][0]["content"]
        assert DEFAULT_OPTIMIZATION_GOALS in prompt
        assert '"totalMonthlyCost":120.0' in prompt

    @pytest.mark.asyncio
    async def test_optimize_with_goals(self):
        provider = MockProvider()
        provider.set_response(recommendation_json(total=80.0))
        client = RecommendationClient(provider)

        optimized = await client.optimize(parse_recommendation(recommendation_json()), "Use serverless")

        assert optimized.total_monthly_cost == 80.0
        assert "Use serverless" in provider.calls[0]["messages"][0]["content"]


class TestNonFiniteNumbers:
    """Replies with NaN or Infinity are rejected before anything is stored."""

    @pytest.mark.parametrize("total", ["NaN", "Infinity", "-Infinity", "1e999"])
    def test_non_finite_total(self, total):
        text = f'{{"services": [], "totalMonthlyCost": {total}, "architecture": {{"tiers": []}}}}'

        with pytest.raises(InvalidStructureError):
            parse_recommendation(text)

    def test_non_finite_service_cost(self):
        text = recommendation_json(
            services=[{"name": "Amazon EC2", "monthlyCost": float("nan")}], total=1.0
        )

        with pytest.raises(InvalidStructureError):
            parse_recommendation(text)

    def test_non_finite_savings(self):
        text = recommendation_json(
            optimizations=[{"type": "Spot", "description": "", "savings": float("inf")}]
        )

        with pytest.raises(InvalidStructureError):
            parse_recommendation(text)
