import asyncio
import json

import pytest

from core.errors import MemoryExtractionFailure
from llm.client import LLMError
from memory.extractor import MEMORY_ANALYSIS_PROMPT, MemoryExtractor, parse_memory_analysis

from conftest import StubProvider


def reply(**fields):
    payload = {"isRelevant": True, "importance": 7, "reason": "grief", "content": "Their father passed away"}
    payload.update(fields)
    return json.dumps(payload)


def test_relevant_analysis():
    analysis = parse_memory_analysis(reply())
    assert analysis.is_relevant
    assert analysis.importance == 7
    assert analysis.to_entry().content == "Their father passed away"


def test_irrelevant_analysis_needs_no_content():
    analysis = parse_memory_analysis(json.dumps({"isRelevant": False, "reason": "chit-chat"}))
    assert not analysis.is_relevant
    assert analysis.reason == "chit-chat"


def test_fenced_reply_is_accepted():
    analysis = parse_memory_analysis(f"```json\n{reply(importance=3)}\n```")
    assert analysis.importance == 3


def test_integral_float_importance_is_accepted():
    assert parse_memory_analysis(reply(importance=4.0)).importance == 4


@pytest.mark.parametrize("importance", [0, 11, 5.5, "7", True, None])
def test_invalid_importance_is_rejected(importance):
    with pytest.raises(MemoryExtractionFailure):
        parse_memory_analysis(reply(importance=importance))


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"importance": 3, "content": "x"}),
        json.dumps({"isRelevant": "yes", "importance": 3, "content": "x"}),
        reply(content="  "),
    ],
)
def test_malformed_replies_are_rejected(text):
    with pytest.raises(MemoryExtractionFailure):
        parse_memory_analysis(text)


def test_extract_sends_fixed_prompt():
    provider = StubProvider(lambda request: reply())
    extractor = MemoryExtractor(provider)

    analysis = asyncio.run(extractor.extract("My father passed away"))

    request = provider.requests[0]
    assert analysis.is_relevant
    assert request.system_prompt == MEMORY_ANALYSIS_PROMPT
    assert request.message == 'User message: "My father passed away"'
    assert request.model == "gpt-3.5-turbo"
    assert request.temperature == 0.3


@pytest.mark.parametrize("error", [LLMError("down", kind="connection"), RuntimeError("backend exploded")])
def test_extract_wraps_provider_errors(error):
    extractor = MemoryExtractor(StubProvider(lambda request: error))
    with pytest.raises(MemoryExtractionFailure):
        asyncio.run(extractor.extract("hello"))
