"""Final cross-session analysis of a split test."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from core.errors import AnalysisFailure
from core.models import SplitTestSession, SplitTestSummary
from llm.client import CompletionProvider, CompletionRequest
from llm.parsing import parse_json_reply

from .feedback_converter import FeedbackConverter

logger = logging.getLogger(__name__)

SPLIT_TEST_ANALYSIS_PROMPT = """You are an expert in prompt engineering for therapeutic chatbots. Your task is to analyze the results of an A/B test between two recipes (sets of prompts) and recommend improvements to the SYSTEM INSTRUCTIONS that define the bot's behavior.

IMPORTANT: DO NOT suggest specific replies or chatbot messages. Instead, suggest changes to the RULES and GUIDELINES the bot must follow.

For example:
- DO NOT SUGGEST: "The bot should say: 'How are you feeling today?'"
- SUGGEST: "Add rule: Open sessions with an open question about the user's current emotional state"

- DO NOT SUGGEST: "Reply: I understand housework can be hard"
- SUGGEST: "Modify the emotional validation rule: Acknowledge the specific context before asking exploratory questions"

Analyze:
1. Which sections of the system instructions are effective and which need improvement
2. Which rules or guidelines are missing or should be added
3. Which behavior patterns should change
4. Which aspects of the bot's personality need adjustment

REQUIRED FORMAT:
For every section that needs changes you MUST:
1. Copy EXACTLY the full current content of the section, including:
   - The section title
   - Every rule and sub-rule
   - The exact formatting and indentation
   - Any example or note

2. Provide the complete new content, keeping:
   - The same structure as the original
   - The same formatting style
   - Every updated rule
   - Any newly added rule
   - The same bullet or numbering scheme

3. List every specific change, stating:
   - The exact rule being modified, added or removed
   - The exact text before and after the change
   - A clear explanation of why the change improves the behavior

Return your analysis as JSON with this structure:
{
  "analysis": {
    "summary": "Overall summary of the recipe analysis",
    "patternsFavoredResponses": "Patterns found in the preferred responses and how they relate to the system instructions",
    "recipeAAnalysis": "Analysis of the instructions in Recipe A",
    "recipeBAnalysis": "Analysis of the instructions in Recipe B"
  },
  "promptChanges": {
    "recipeA": [
      {
        "promptTitle": "Exact section title",
        "action": "KEEP | MODIFY | REMOVE",
        "currentContent": "FULL AND EXACT CURRENT CONTENT of the section",
        "suggestedContent": "FULL NEW CONTENT with the same structure and formatting",
        "changes": [
          {
            "type": "ADD | MODIFY | REMOVE",
            "before": "Exact original rule text (if any)",
            "after": "Exact new rule text (if any)",
            "explanation": "Why this change improves the bot's behavior"
          }
        ],
        "explanation": "How these changes improve the bot's behavior overall"
      }
    ],
    "recipeB": [/* same format as recipeA */]
  },
  "newPrompts": {
    "suggested": [
      {
        "title": "Title of the new section",
        "content": "Full, formatted content of the new section in the style of the existing ones",
        "purpose": "Which aspect of the bot's behavior it improves",
        "implementation": "A | B | BOTH",
        "placement": "Where to place this section relative to the existing ones"
      }
    ]
  }
}

Make sure every suggestion:
1. Is a RULE or INSTRUCTION for the bot's behavior, NOT a specific reply
2. Contains clear, actionable guidance
3. Stays consistent with the therapeutic style
4. Addresses patterns identified in the feedback
5. Shows clearly which rules are being changed
6. Explains why each change improves the behavior

IMPORTANT:
- ALWAYS include the full, exact content of the current sections
- ALWAYS keep the same formatting style and structure
- NEVER suggest specific bot replies
- ALWAYS list each specific change with its before and after"""


@dataclass
class StructuredAnalysis:
    """Parsed improvement suggestions for a finished split test."""

    analysis: dict = field(default_factory=dict)
    prompt_changes: dict = field(default_factory=dict)
    new_prompts: list[dict] = field(default_factory=list)
    raw: dict = field(default_factory=dict)

    def to_summary(self) -> SplitTestSummary:
        return SplitTestSummary(
            content=self.raw,
            improved_prompt_suggestions=self.new_prompts,
        )


class AnalysisRequester:
    """Sends a finished session to the analyst model and parses the reply."""

    def __init__(
        self,
        provider: CompletionProvider,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        converter: Optional[FeedbackConverter] = None,
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.converter = converter or FeedbackConverter()

    async def request_analysis(self, session: SplitTestSession) -> StructuredAnalysis:
        """
        Request improvement suggestions for a session.

        Raises AnalysisFailure on a failed call or an unparseable reply;
        the raw reply text is kept on the exception for display.
        """
        if not session.messages:
            raise AnalysisFailure("Messages are required for analysis")

        request = CompletionRequest(
            message=self.converter.to_text(session),
            system_prompt=SPLIT_TEST_ANALYSIS_PROMPT,
            model=self.model,
            temperature=self.temperature,
        )
        try:
            response = await self.provider.complete_chat(request)
        except Exception as e:
            logger.error("Split test analysis call failed for session %s: %s", session.id, e)
            raise AnalysisFailure(f"Analysis request failed: {e}") from e

        return parse_analysis(response.text)


def parse_analysis(text: str) -> StructuredAnalysis:
    """Parse the analyst reply. Raises AnalysisFailure carrying the raw text."""
    try:
        payload = parse_json_reply(text)
    except ValueError as e:
        logger.error("Could not parse split test analysis: %s", e)
        raise AnalysisFailure(f"Could not parse analysis response: {e}", raw_text=text) from e

    new_prompts = payload.get("newPrompts") or {}
    suggested = new_prompts.get("suggested") if isinstance(new_prompts, dict) else new_prompts

    return StructuredAnalysis(
        analysis=payload.get("analysis") or {},
        prompt_changes=payload.get("promptChanges") or {},
        new_prompts=[s for s in (suggested or []) if isinstance(s, dict)],
        raw=payload,
    )
