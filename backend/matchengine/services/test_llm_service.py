import asyncio

import pytest

from matchengine.services.llm_service import (
    STRICT_JSON_SUFFIX,
    LLMResponseError,
    LLMService,
    parse_json_response,
    request_json,
)


class _Msg:
    def __init__(self, content: str):
        self.content = content


class _Choice:
    def __init__(self, content: str):
        self.message = _Msg(content)


class _Resp:
    def __init__(self, content: str):
        self.choices = [_Choice(content)]


class _Completions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = 0

    async def create(self, model, messages, temperature, max_tokens):
        self.calls += 1
        if self.error:
            raise self.error
        return _Resp(self.reply)


class _Chat:
    def __init__(self, completions):
        self.completions = completions


class _Groq:
    def __init__(self, reply=None, error=None):
        self.chat = _Chat(_Completions(reply, error))


class ScriptedLLM:
    """Replies from a fixed script, recording every prompt."""

    def __init__(self, replies, delay: float = 0):
        self.replies = list(replies)
        self.delay = delay
        self.prompts = []

    async def generate_json(self, prompt, system_prompt=None, temperature=0.3):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.replies.pop(0)


def test_parse_plain_and_fenced_json():
    assert parse_json_response('{"age": 52}') == {"age": 52}
    assert parse_json_response('```json\n{"age": 52}\n```') == {"age": 52}
    assert parse_json_response("```\n[1, 2]\n```") == [1, 2]


def test_parse_json_surrounded_by_prose():
    assert parse_json_response('Here is the profile: {"age": 52, "conditions": ["x"]} Hope this helps') == {
        "age": 52,
        "conditions": ["x"],
    }
    assert parse_json_response('Trials: [{"nctId": "NCT00000001"}] done') == [{"nctId": "NCT00000001"}]


def test_parse_rejects_non_json():
    with pytest.raises(LLMResponseError):
        parse_json_response("I cannot help with that.")
    with pytest.raises(LLMResponseError):
        parse_json_response("")
    with pytest.raises(LLMResponseError):
        parse_json_response(None)


def test_request_json_retries_once_with_stricter_prompt():
    llm = ScriptedLLM(["Sure! The patient is 52.", '{"age": 52}'])
    assert asyncio.run(request_json(llm, "extract", timeout=1)) == {"age": 52}
    assert len(llm.prompts) == 2
    assert llm.prompts[1] == "extract" + STRICT_JSON_SUFFIX


def test_request_json_gives_up_after_one_retry():
    llm = ScriptedLLM(["nope", "still nope", '{"never": "reached"}'])
    with pytest.raises(LLMResponseError):
        asyncio.run(request_json(llm, "extract", timeout=1))
    assert len(llm.prompts) == 2


def test_request_json_times_out_without_retry():
    llm = ScriptedLLM(['{"age": 52}', '{"age": 52}'], delay=1)
    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(request_json(llm, "extract", timeout=0.01))
    assert len(llm.prompts) == 1


def test_generate_falls_through_provider_chain():
    service = LLMService()
    limited = _Groq(error=RuntimeError("429 rate limit exceeded"))
    working = _Groq(reply='{"ok": true}')
    service.clients = [(limited, "first", "groq"), (working, "second", "groq")]
    service.current_index = 0

    assert asyncio.run(service.generate_json("prompt")) == '{"ok": true}'
    assert service.current_index == 1
    assert limited.chat.completions.calls == 1

    # The provider that answered is tried first next time
    asyncio.run(service.generate("prompt"))
    assert limited.chat.completions.calls == 1
    assert working.chat.completions.calls == 2


def test_generate_without_providers_raises():
    service = LLMService()
    service.clients = []
    with pytest.raises(RuntimeError):
        asyncio.run(service.generate("prompt"))


def test_all_providers_failing_raises():
    service = LLMService()
    service.clients = [(_Groq(error=ValueError("boom")), "only", "groq")]
    service.current_index = 0
    with pytest.raises(RuntimeError, match="All LLM providers failed"):
        asyncio.run(service.generate("prompt"))
