import json

import httpx
import openai
import pytest
import respx
from httpx import Response

from staffplan.run_utils.llm import LLMClient, classify_openai_error
from staffplan.utils.errors import TransportError, TransportErrorKind

COMPLETIONS_URL = "http://llm.test/v1/chat/completions"


def completion(content: str) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "reasoning-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
    }


def test_classify_timeout_before_connection():
    request = httpx.Request("POST", COMPLETIONS_URL)
    assert classify_openai_error(openai.APITimeoutError(request=request)) is TransportErrorKind.TIMEOUT
    assert (
        classify_openai_error(openai.APIConnectionError(request=request))
        is TransportErrorKind.CONNECTION
    )


@pytest.mark.asyncio
async def test_reason_sends_single_user_turn(settings):
    llm = LLMClient(settings)
    captured = {}
    try:
        with respx.mock(assert_all_called=True) as respx_mock:

            def handler(request):
                captured["json"] = json.loads(request.content.decode("utf-8"))
                return Response(200, json=completion("Tasks: C.5.1"))

            respx_mock.post(COMPLETIONS_URL).mock(side_effect=handler)
            text = await llm.reason("Read this RFP", op="step1.reasoning")
    finally:
        await llm.close()

    assert text == "Tasks: C.5.1"
    payload = captured["json"]
    assert payload["model"] == "reasoning-model"
    assert payload["messages"] == [{"role": "user", "content": "Read this RFP"}]
    assert payload["max_tokens"] == settings.reasoning_max_tokens
    assert "temperature" not in payload


@pytest.mark.asyncio
async def test_context_length_error_is_tagged(settings):
    llm = LLMClient(settings)
    body = {
        "error": {
            "message": "This model's maximum context length is 8192 tokens.",
            "type": "invalid_request_error",
            "param": "messages",
            "code": "context_length_exceeded",
        }
    }
    try:
        with respx.mock() as respx_mock:
            respx_mock.post(COMPLETIONS_URL).mock(return_value=Response(400, json=body))
            with pytest.raises(TransportError) as info:
                await llm.chat([{"role": "user", "content": "hi"}])
    finally:
        await llm.close()

    assert info.value.kind is TransportErrorKind.CONTEXT_LENGTH
    assert info.value.op == "chat"


@pytest.mark.asyncio
async def test_rate_limit_and_connection_errors_are_tagged(settings):
    llm = LLMClient(settings)
    body = {"error": {"message": "Rate limit reached", "type": "requests", "code": "rate_limit_exceeded"}}
    try:
        with respx.mock() as respx_mock:
            route = respx_mock.post(COMPLETIONS_URL)

            route.mock(return_value=Response(429, json=body))
            with pytest.raises(TransportError) as rate_limited:
                await llm.extract_structured([{"role": "user", "content": "x"}], op="step2.parser")

            route.mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(TransportError) as unreachable:
                await llm.repair([{"role": "user", "content": "x"}], op="step2.repair")
    finally:
        await llm.close()

    assert rate_limited.value.kind is TransportErrorKind.RATE_LIMIT
    assert unreachable.value.kind is TransportErrorKind.CONNECTION
