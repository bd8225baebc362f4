import json

import pytest

from analysis.requester import AnalysisRequester
from core.database import configure_engine, init_db
from core.history_store import HistoryStore
from core.models import (
    MemoryEntry,
    PromptSnapshot,
    RecipeSnapshot,
    SessionMemory,
    SplitTestMessage,
    SplitTestSession,
    SplitTestSide,
)
from core.prompt_manager import PromptManager
from core.split_test import SplitTestEngine
from llm.client import LLMResponse
from memory.extractor import MemoryExtractor

IRRELEVANT = json.dumps({"isRelevant": False, "importance": 1, "reason": "small talk", "content": ""})

ANALYSIS_REPLY = json.dumps(
    {
        "analysis": {"summary": "B was preferred for brevity"},
        "promptChanges": {"recipeA": [], "recipeB": []},
        "newPrompts": {"suggested": [{"title": "Brevity", "content": "Keep it short."}]},
    }
)


class StubProvider:
    """Completion provider answering from a callable; records every request."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda request: "ok")
        self.requests = []

    async def complete_chat(self, request):
        self.requests.append(request)
        result = self.responder(request)
        if isinstance(result, Exception):
            raise result
        return LLMResponse(text=result, tokens_used=0, latency_ms=0, model=request.model)


def snapshot(title, content):
    return RecipeSnapshot(
        id=title.lower(),
        title=title,
        description=f"{title} recipe",
        prompt_ids=["p"],
        prompts=[PromptSnapshot(id="p", title="Rules", content=content)],
    )


def make_session(feedbacks):
    """A two-recipe session with one turn per entry in ``feedbacks``."""
    a, b = snapshot("A", "Be concise"), snapshot("B", "Be verbose")
    messages = [
        SplitTestMessage(
            sequence=i + 1,
            user_text=f"question {i + 1}",
            response_a=SplitTestSide(recipe_snapshot=a, text="short"),
            response_b=SplitTestSide(recipe_snapshot=b, text="long"),
            feedback=fb,
            model_used="gpt-4o",
            temperature=0.7,
        )
        for i, fb in enumerate(feedbacks)
    ]
    return SplitTestSession(
        recipe_a=a,
        recipe_b=b,
        messages=messages,
        memory=SessionMemory(entries=[MemoryEntry(content="Works nights", importance=6, reason="context")]),
        model_used="gpt-4o",
    )


@pytest.fixture(autouse=True)
def db():
    """Fresh in-memory database per test."""
    engine = configure_engine("sqlite://")
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def prompt_manager():
    return PromptManager()


@pytest.fixture
def store():
    return HistoryStore()


@pytest.fixture
def make_recipe(prompt_manager):
    def _make(title, *contents, **params):
        prompt_ids = [
            prompt_manager.create_prompt(f"{title} {i + 1}", content).id
            for i, content in enumerate(contents)
        ]
        return prompt_manager.create_recipe(title, prompt_ids, **params)

    return _make


@pytest.fixture
def make_engine(prompt_manager, store):
    def _make(responder=None, memory_responder=None, analysis_responder=None, with_store=True, **kwargs):
        provider = StubProvider(responder)
        memory_provider = StubProvider(memory_responder or (lambda request: IRRELEVANT))
        analysis_provider = StubProvider(analysis_responder or (lambda request: ANALYSIS_REPLY))
        engine = SplitTestEngine(
            prompt_manager=prompt_manager,
            provider=provider,
            memory_extractor=MemoryExtractor(memory_provider),
            analysis_requester=AnalysisRequester(analysis_provider),
            history_store=store if with_store else None,
            **kwargs,
        )
        engine.stub = provider
        engine.memory_stub = memory_provider
        engine.analysis_stub = analysis_provider
        return engine

    return _make
