"""Converts a split-test session into the analysis request payload."""

import json

from core.models import RecipeSnapshot, SplitTestMessage, SplitTestSession


class FeedbackConverter:
    """Packages recipes, transcript, feedback and memory for the analyst model."""

    def convert(self, session: SplitTestSession) -> dict:
        """Build the analysis context for a session."""
        return {
            "recipes": {
                "A": self._recipe_context(session.recipe_a),
                "B": self._recipe_context(session.recipe_b),
            },
            "conversation": [self._turn_context(m) for m in session.messages],
            "memory": [
                {
                    "content": entry.content,
                    "importance": entry.importance,
                    "reason": entry.reason,
                }
                for entry in session.memory.entries
            ],
        }

    def to_text(self, session: SplitTestSession) -> str:
        """Analysis context as pretty-printed JSON."""
        return json.dumps(self.convert(session), indent=2, ensure_ascii=False)

    def _recipe_context(self, recipe: RecipeSnapshot) -> dict:
        return {
            "title": recipe.title,
            "description": recipe.description,
            "prompts": [
                {"title": p.title, "content": p.content}
                for p in recipe.prompts
            ],
        }

    def _turn_context(self, message: SplitTestMessage) -> dict:
        feedback = message.live_feedback
        return {
            "user": message.user_text,
            "responseA": message.response_a.text,
            "responseB": message.response_b.text,
            "selectedOption": feedback.selected_option.value if feedback else None,
            "reaction": feedback.reaction.value if feedback else None,
            "feedback": feedback.comment if feedback else None,
        }
