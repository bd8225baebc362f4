"""Memory extraction from user utterances for Splitbench split tests."""

import logging
from dataclasses import dataclass
from typing import Optional

from core.errors import MemoryExtractionFailure
from core.models import MemoryEntry
from llm.client import CompletionProvider, CompletionRequest
from llm.parsing import parse_json_reply

logger = logging.getLogger(__name__)

MEMORY_ANALYSIS_PROMPT = """Analyze the following user message and decide whether it contains relevant information about a personal, emotional or critical problem that could matter in a therapy or psychological-analysis context.
Consider:
1. Complex emotional situations or inner conflicts.
2. Personal difficulties that call for follow-up or later reflection.
3. Significant experiences or traumatic events.
4. Deep goals or wishes related to emotional wellbeing.
5. Topics that help understand the user's needs in therapy.

Ignore:
1. Trivial or low-impact details (such as food or place preferences).
2. Information unrelated to emotional or mental wellbeing.

Reply in JSON with exactly this structure:
{
  "isRelevant": boolean,
  "importance": number (1-10),
  "reason": "why it is or is not relevant",
  "content": "the specific fact to remember (if relevant)"
}"""


@dataclass
class MemoryAnalysis:
    """Outcome of classifying one user message."""

    is_relevant: bool
    importance: Optional[int] = None
    reason: str = ""
    content: str = ""

    def to_entry(self) -> MemoryEntry:
        """Build the memory entry for a relevant analysis."""
        return MemoryEntry(
            content=self.content,
            importance=self.importance,
            reason=self.reason,
        )


class MemoryExtractor:
    """
    Decides whether a user utterance holds durable information worth
    remembering across the rest of a split test.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.3,
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature

    async def extract(self, user_text: str) -> MemoryAnalysis:
        """
        Classify a single user message.

        Raises MemoryExtractionFailure when the call fails or the reply is
        not a valid analysis; callers treat that as "no memory update".
        """
        request = CompletionRequest(
            message=f'User message: "{user_text}"',
            system_prompt=MEMORY_ANALYSIS_PROMPT,
            model=self.model,
            temperature=self.temperature,
        )
        try:
            response = await self.provider.complete_chat(request)
        except Exception as e:
            raise MemoryExtractionFailure(f"Memory analysis call failed: {e}") from e

        return parse_memory_analysis(response.text)


def parse_memory_analysis(text: str) -> MemoryAnalysis:
    """Parse and validate a memory analysis reply."""
    try:
        payload = parse_json_reply(text)
    except ValueError as e:
        raise MemoryExtractionFailure(f"Memory analysis is not valid JSON: {e}") from e

    is_relevant = payload.get("isRelevant")
    if not isinstance(is_relevant, bool):
        raise MemoryExtractionFailure("Memory analysis has no boolean 'isRelevant'")

    reason = str(payload.get("reason") or "")
    if not is_relevant:
        return MemoryAnalysis(is_relevant=False, reason=reason)

    importance = _validate_importance(payload.get("importance"))
    content = str(payload.get("content") or "").strip()
    if not content:
        raise MemoryExtractionFailure("Relevant memory analysis has no content")

    return MemoryAnalysis(
        is_relevant=True,
        importance=importance,
        reason=reason,
        content=content,
    )


def _validate_importance(value) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MemoryExtractionFailure(f"Importance must be a number, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise MemoryExtractionFailure(f"Importance must be an integer, got {value!r}")
    importance = int(value)
    if not 1 <= importance <= 10:
        raise MemoryExtractionFailure(f"Importance {importance} is outside 1-10")
    return importance
