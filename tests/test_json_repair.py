import pytest

from staffplan.run_utils.json_repair import recover_json, sanitize_json_text
from staffplan.utils.errors import JsonRecoveryExhausted, TransportError, TransportErrorKind
from tests.fakes import FakeLLMClient

CONTEXT = [
    {"role": "system", "content": "You are a JSON parser."},
    {"role": "user", "content": "free-form reasoning"},
]


def test_sanitize_strips_fences_and_wrapping_parens():
    assert sanitize_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert sanitize_json_text('```JSON\n[1, 2]\n```') == "[1, 2]"
    assert sanitize_json_text('  ({"a": 1})\n') == '{"a": 1}'
    assert sanitize_json_text("") == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        '```json\n{"tasks": [{"taskId": "C.1"}]}\n```',
        '({"tasks": [{"taskId": "C.1"}]})',
        '```\n({"tasks": [{"taskId": "C.1"}]})\n```',
    ],
)
async def test_wrapped_valid_json_needs_no_repair(settings, raw):
    llm = FakeLLMClient(settings)
    data = await recover_json(llm, raw, CONTEXT)
    assert data == {"tasks": [{"taskId": "C.1"}]}
    assert llm.calls == []


@pytest.mark.asyncio
async def test_valid_json_parses_on_first_attempt(settings):
    llm = FakeLLMClient(settings)
    first = await recover_json(llm, '{"hours": 1880}', CONTEXT)
    again = await recover_json(llm, '{"hours": 1880}', CONTEXT)
    assert first == again == {"hours": 1880}
    assert llm.calls == []


@pytest.mark.asyncio
async def test_repair_call_replays_context_with_error_and_invalid_text(settings):
    llm = FakeLLMClient(settings, {"step1.repair": ['```json\n{"ok": true}\n```']})
    data = await recover_json(llm, '{"ok": tru', CONTEXT, op="step1.repair")

    assert data == {"ok": True}
    (call,) = llm.calls
    assert call["model"] == "parser-model"
    assert call["temperature"] == 0.0
    assert call["messages"][: len(CONTEXT)] == CONTEXT
    instruction = call["messages"][-1]
    assert instruction["role"] == "system"
    assert '{"ok": tru' in instruction["content"]
    assert "Expecting" in instruction["content"]


@pytest.mark.asyncio
async def test_malformed_output_exhausts_budget(settings):
    llm = FakeLLMClient(settings, {"json_repair": ["still {broken", "nope", "never used"]})

    with pytest.raises(JsonRecoveryExhausted) as info:
        await recover_json(llm, "{broken", CONTEXT, max_attempts=2)

    assert len(llm.calls) == 2
    assert info.value.attempts == 2
    assert info.value.raw_text == "nope"
    assert info.value.parse_error


@pytest.mark.asyncio
async def test_zero_budget_fails_without_model_calls(settings):
    llm = FakeLLMClient(settings)
    with pytest.raises(JsonRecoveryExhausted):
        await recover_json(llm, "not json", CONTEXT, max_attempts=0)
    assert llm.calls == []


@pytest.mark.asyncio
async def test_transport_failure_during_repair_propagates(settings):
    llm = FakeLLMClient(
        settings, {"json_repair": [TransportError(TransportErrorKind.TIMEOUT, "timed out")]}
    )
    with pytest.raises(TransportError) as info:
        await recover_json(llm, "{", CONTEXT)
    assert info.value.kind is TransportErrorKind.TIMEOUT
