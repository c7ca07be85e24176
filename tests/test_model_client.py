"""
Tests for the Model Client and providers
"""

import asyncio
import json

import httpx
import pytest

from policy_server.config import ModelEndpoint
from policy_server.errors import ModelUnavailable
from policy_server.llm import HuggingFaceProvider, LMStudioProvider, OpenAIProvider, get_provider
from policy_server.services.candidate_selector import Candidate
from policy_server.services.model_client import (
    FAILURE_CONNECTION,
    FAILURE_HTTP_STATUS,
    FAILURE_INVALID_RESPONSE,
    FAILURE_TIMEOUT,
    ModelClient,
)
from tests.conftest import ScriptedProvider, make_settings


REPLY = '{"answer": "Up to 3 days per week.", "policyId": 7, "confidence": 0.92}'


def _candidate(policy_id, excerpt="Employees may work remotely up to 3 days/week."):
    return Candidate(
        policy_id=policy_id,
        title=f"Policy {policy_id}",
        relevance_score=1.0,
        excerpt=excerpt,
    )


def _request_error(message):
    return httpx.ConnectError(message, request=httpx.Request("POST", "http://model.test"))


def _status_error(code):
    request = httpx.Request("POST", "http://model.test")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestFallbackChain:
    """Tests for ordered endpoint fallback."""

    @pytest.mark.asyncio
    async def test_primary_answers(self):
        primary = ScriptedProvider("primary", REPLY)
        fallback = ScriptedProvider("fallback", "unused")
        client = ModelClient(make_settings(), providers=[primary, fallback])

        output = await client.invoke("remote work?", [_candidate(7)])

        assert output == REPLY
        assert len(primary.calls) == 1
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_falls_back_in_order(self):
        """Each failed endpoint is tried once, then the next one answers."""
        first = ScriptedProvider("first", _status_error(503))
        second = ScriptedProvider("second", _request_error("refused"))
        third = ScriptedProvider("third", REPLY)
        client = ModelClient(make_settings(), providers=[first, second, third])

        invocation = await client.invoke_with_trace("remote work?", [_candidate(7)])

        assert invocation.output == REPLY
        assert invocation.endpoint == "third"
        assert [f.failure_class for f in invocation.failures] == [
            FAILURE_HTTP_STATUS,
            FAILURE_CONNECTION,
        ]
        assert len(first.calls) == len(second.calls) == len(third.calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_failure_of_that_endpoint_only(self):
        class SlowProvider(ScriptedProvider):
            async def chat(self, messages, max_tokens=500, temperature=0.7):
                self.calls.append(messages)
                await asyncio.sleep(5)
                return REPLY

        slow = SlowProvider("slow", REPLY, timeout_ms=20)
        backup = ScriptedProvider("backup", REPLY)
        client = ModelClient(make_settings(), providers=[slow, backup])

        invocation = await client.invoke_with_trace("remote work?", [_candidate(7)])

        assert invocation.endpoint == "backup"
        assert invocation.failures[0].failure_class == FAILURE_TIMEOUT

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self):
        """Exhaustion raises ModelUnavailable carrying every failure."""
        providers = [
            ScriptedProvider("a", _status_error(500)),
            ScriptedProvider("b", ValueError("Malformed chat completion envelope")),
        ]
        client = ModelClient(make_settings(), providers=providers)

        with pytest.raises(ModelUnavailable) as exc_info:
            await client.invoke("remote work?", [_candidate(7)])

        failures = exc_info.value.failures
        assert [f.endpoint for f in failures] == ["a", "b"]
        assert failures[1].failure_class == FAILURE_INVALID_RESPONSE
        assert exc_info.value.status_code == 503

    def test_requires_an_endpoint(self):
        with pytest.raises(ValueError):
            ModelClient(make_settings(), providers=[])


class TestPromptConstruction:
    """Tests for the context budget and message layout."""

    def test_drops_lowest_ranked_candidates_first(self):
        settings = make_settings()
        settings.search.context_budget_chars = 250
        client = ModelClient(settings, providers=[ScriptedProvider("p", REPLY)])
        candidates = [_candidate(i, excerpt="x" * 100) for i in (1, 2, 3)]

        kept = client.fit_to_budget(candidates)

        assert [c.policy_id for c in kept] == [1, 2]

    def test_truncates_single_oversized_candidate(self):
        settings = make_settings()
        settings.search.context_budget_chars = 100
        client = ModelClient(settings, providers=[ScriptedProvider("p", REPLY)])

        kept = client.fit_to_budget([_candidate(1, excerpt="y" * 500)])

        assert len(kept) == 1
        assert len(kept[0].excerpt) == 100

    @pytest.mark.asyncio
    async def test_trace_reports_candidates_sent(self):
        settings = make_settings()
        settings.search.context_budget_chars = 150
        provider = ScriptedProvider("p", REPLY)
        client = ModelClient(settings, providers=[provider])
        candidates = [_candidate(i, excerpt="z" * 100) for i in (4, 5)]

        invocation = await client.invoke_with_trace("question", candidates)

        assert [c.policy_id for c in invocation.candidates_sent] == [4]
        prompt = provider.calls[0][1]["content"]
        assert "POLICY #4" in prompt
        assert "POLICY #5" not in prompt
        assert prompt.endswith("QUESTION: question")


class TestProviders:
    """Provider wire formats against httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_openai_chat_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": REPLY}}]}
            )

        endpoint = ModelEndpoint(
            name="openai:gpt", provider="openai",
            base_url="http://model.test/v1/", model="gpt", api_key="sk-test",
        )
        provider = get_provider(endpoint, transport=httpx.MockTransport(handler))

        output = await provider.chat([{"role": "user", "content": "hi"}], max_tokens=50)

        assert isinstance(provider, OpenAIProvider)
        assert output == REPLY
        assert seen["url"] == "http://model.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_huggingface_text_generation(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"generated_text": REPLY}])

        endpoint = ModelEndpoint(
            name="hf:mistral", provider="huggingface",
            base_url="https://hf.test/models", model="mistralai/Mistral-7B-Instruct-v0.2",
        )
        provider = get_provider(endpoint, transport=httpx.MockTransport(handler))

        output = await provider.chat([
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Question?"},
        ])

        assert isinstance(provider, HuggingFaceProvider)
        assert output == REPLY
        assert seen["url"] == "https://hf.test/models/mistralai/Mistral-7B-Instruct-v0.2"
        assert seen["body"]["inputs"] == "<s>[INST] Be brief.\n\nQuestion? [/INST]"
        assert seen["body"]["parameters"]["return_full_text"] is False

    @pytest.mark.asyncio
    async def test_lm_studio_complete_sends_single_user_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": REPLY}}]}
            )

        endpoint = ModelEndpoint(
            name="local", provider="lm_studio",
            base_url="http://localhost:1234/v1/", model="local-model",
        )
        provider = get_provider(endpoint, transport=httpx.MockTransport(handler))

        output = await provider.complete("Question?", max_tokens=64)

        assert isinstance(provider, LMStudioProvider)
        assert not hasattr(provider, "is_available")
        assert output == REPLY
        assert seen["url"] == "http://localhost:1234/v1/chat/completions"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Question?"}]
        assert seen["body"]["model"] == "local-model"

    @pytest.mark.asyncio
    async def test_redirect_is_not_followed(self):
        """A 3xx surfaces as an http_status failure."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, headers={"Location": "https://elsewhere.test/"})

        endpoint = ModelEndpoint(
            name="redirecting", provider="lm_studio",
            base_url="http://model.test/v1", model="local",
        )
        provider = get_provider(endpoint, transport=httpx.MockTransport(handler))
        client = ModelClient(make_settings(), providers=[provider])

        with pytest.raises(ModelUnavailable) as exc_info:
            await client.invoke("q", [_candidate(1)])

        assert exc_info.value.failures[0].failure_class == FAILURE_HTTP_STATUS

    @pytest.mark.asyncio
    async def test_unreadable_envelope_is_invalid_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        endpoint = ModelEndpoint(
            name="broken", provider="openai",
            base_url="http://model.test/v1", model="gpt", api_key="k",
        )
        provider = get_provider(endpoint, transport=httpx.MockTransport(handler))
        client = ModelClient(make_settings(), providers=[provider])

        with pytest.raises(ModelUnavailable) as exc_info:
            await client.invoke("q", [_candidate(1)])

        assert exc_info.value.failures[0].failure_class == FAILURE_INVALID_RESPONSE


class TestConcurrencyBound:
    """Tests for the outbound call limit."""

    @staticmethod
    def _counting_provider():
        class CountingProvider(ScriptedProvider):
            in_flight = 0
            peak = 0

            async def chat(self, messages, max_tokens=500, temperature=0.7):
                self.calls.append(messages)
                CountingProvider.in_flight += 1
                CountingProvider.peak = max(CountingProvider.peak, CountingProvider.in_flight)
                try:
                    await asyncio.sleep(0.02)
                    return REPLY
                finally:
                    CountingProvider.in_flight -= 1

        return CountingProvider("counting", REPLY)

    @pytest.mark.asyncio
    async def test_in_flight_calls_capped(self):
        """Eight concurrent invocations never exceed two outbound calls."""
        settings = make_settings()
        settings.llm.max_concurrent_calls = 2
        provider = self._counting_provider()
        client = ModelClient(settings, providers=[provider])

        outputs = await asyncio.gather(
            *(client.invoke(f"question {i}", [_candidate(1)]) for i in range(8))
        )

        assert outputs == [REPLY] * 8
        assert len(provider.calls) == 8
        assert type(provider).peak == 2

    def test_client_built_outside_event_loop(self):
        """A client created before the server loop starts works under contention."""
        settings = make_settings()
        settings.llm.max_concurrent_calls = 1
        provider = self._counting_provider()
        client = ModelClient(settings, providers=[provider])

        async def run():
            return await asyncio.gather(
                *(client.invoke("question", [_candidate(1)]) for _ in range(3))
            )

        assert asyncio.run(run()) == [REPLY] * 3
        assert type(provider).peak == 1
