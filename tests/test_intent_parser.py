from __future__ import annotations

import io
import json
from typing import Any
from urllib.error import URLError

import pytest

from shopledger.intent import llm_parser, parser
from shopledger.intent.llm_parser import LLMConfig, LLMParserError, classify_via_llm, render_prompt
from shopledger.intent.parser import ConfiguredClassifier, IntentParserError, parse_action_with_source


def test_rules_are_used_when_llm_is_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    def _unexpected(*_args: Any, **_kwargs: Any) -> dict[str, Any]:
        raise AssertionError("LLM must not be called")

    monkeypatch.setattr(parser, "classify_via_llm", _unexpected)

    result = parse_action_with_source("Sold 5 Rice at 30 each", llm_enabled=False)

    assert result.source == "rules"
    assert result.classification.action_type == "add_sale"


def test_llm_result_is_used_when_valid(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}

    def _fake_llm(text: str, *, config: LLMConfig, catalog: Any, locale: str) -> dict[str, Any]:
        seen.update(text=text, key=config.api_key, catalog=catalog, locale=locale)
        return {
            "isAction": True,
            "actionType": "add_expense",
            "data": {"amount": 500, "description": "chai", "category": "Other"},
            "confidence": 0.95,
        }

    monkeypatch.setattr(parser, "classify_via_llm", _fake_llm)

    result = parse_action_with_source(
        "चाय पर 500 खर्च",
        catalog=("Rice",),
        locale="hi",
        llm_enabled=True,
        llm_api_key="k",
    )

    assert result.source == "llm"
    assert result.classification.action_type == "add_expense"
    assert result.classification.confidence == 0.95
    assert seen == {"text": "चाय पर 500 खर्च", "key": "k", "catalog": ("Rice",), "locale": "hi"}


@pytest.mark.parametrize(
    "llm_behaviour",
    [
        "raise",
        "bad_envelope",
    ],
)
def test_llm_failures_fall_back_to_rules(monkeypatch: pytest.MonkeyPatch, llm_behaviour: str) -> None:
    def _fake_llm(*_args: Any, **_kwargs: Any) -> dict[str, Any]:
        if llm_behaviour == "raise":
            raise LLMParserError("LLM connection error")
        return {"actionType": "add_sale", "confidence": 7}

    monkeypatch.setattr(parser, "classify_via_llm", _fake_llm)

    result = parse_action_with_source("Paid 1200 for electricity", llm_enabled=True, llm_api_key="k")

    assert result.source == "rules"
    assert result.classification.action_type == "add_expense"


def test_missing_llm_key_falls_back_to_rules(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LLM_API_KEY", raising=False)

    result = parse_action_with_source("Paid 1200 for electricity", llm_enabled=True)

    assert result.source == "rules"


def test_rules_failure_raises_intent_parser_error() -> None:
    with pytest.raises(IntentParserError):
        parse_action_with_source("hello there", llm_enabled=False)


@pytest.mark.asyncio
async def test_configured_classifier_runs_rules_off_the_loop() -> None:
    classifier = ConfiguredClassifier(llm_enabled=False)

    result = await classifier.classify("Reduce Milk by 5", catalog=["Milk"], locale="en")

    assert result.source == "rules"
    assert result.classification.action_type == "update_inventory"
    assert result.classification.data is not None
    assert result.classification.data["item_name"] == "Milk"


def test_render_prompt_fills_catalog_and_language() -> None:
    prompt = render_prompt(catalog=("Rice", "Milk"), locale="hi")

    assert "Rice, Milk" in prompt
    assert "Hindi" in prompt
    assert "{catalog}" not in prompt and "{language}" not in prompt


def test_render_prompt_without_catalog() -> None:
    prompt = render_prompt(catalog=(), locale="xx")

    assert "prefer these spellings): None" in prompt
    assert "English" in prompt


class _FakeResponse(io.BytesIO):
    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


def _completion(content: str) -> bytes:
    return json.dumps({"choices": [{"message": {"content": content}}]}).encode()


def test_classify_via_llm_requests_json_and_strips_fences(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _fake_urlopen(req: Any, timeout: float) -> _FakeResponse:
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        captured["body"] = json.loads(req.data)
        captured["timeout"] = timeout
        return _FakeResponse(_completion('```json\n{"isAction": false, "reason": "question"}\n```'))

    monkeypatch.setattr(llm_parser, "urlopen", _fake_urlopen)
    config = LLMConfig(api_key="secret", api_base="https://llm.example/v1/", timeout_s=5.0)

    obj = classify_via_llm("how much did I sell?", config=config, catalog=("Rice",))

    assert obj == {"isAction": False, "reason": "question"}
    assert captured["url"] == "https://llm.example/v1/chat/completions"
    assert captured["auth"] == "Bearer secret"
    assert captured["timeout"] == 5.0
    body = captured["body"]
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0
    assert body["messages"][1] == {"role": "user", "content": "how much did I sell?"}
    assert "Rice" in body["messages"][0]["content"]


@pytest.mark.parametrize(
    "content",
    [
        "[1, 2, 3]",
        "not json at all",
    ],
)
def test_classify_via_llm_rejects_non_objects(monkeypatch: pytest.MonkeyPatch, content: str) -> None:
    monkeypatch.setattr(llm_parser, "urlopen", lambda _req, timeout: _FakeResponse(_completion(content)))

    with pytest.raises(LLMParserError):
        classify_via_llm("x", config=LLMConfig(api_key="k"))


def test_classify_via_llm_wraps_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _unreachable(_req: Any, timeout: float) -> _FakeResponse:
        raise URLError("no route")

    monkeypatch.setattr(llm_parser, "urlopen", _unreachable)

    with pytest.raises(LLMParserError, match="connection"):
        classify_via_llm("x", config=LLMConfig(api_key="k"))
