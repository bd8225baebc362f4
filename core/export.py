"""Export functionality for Splitbench."""

import json

from .models import RecipeSnapshot, SplitTestSession


def export_split_test_json(session: SplitTestSession) -> str:
    """Export a full split-test session as JSON."""
    return json.dumps(session.model_dump(mode="json"), indent=2, ensure_ascii=False)


def _recipe_markdown(label: str, recipe: RecipeSnapshot) -> str:
    prompts = "\n\n".join(f"#### {p.title}\n\n```\n{p.content}\n```" for p in recipe.prompts)
    description = f"\n{recipe.description}\n" if recipe.description else ""
    return f"""### Recipe {label}: {recipe.title}
{description}
{prompts}
"""


def export_split_test_markdown(session: SplitTestSession) -> str:
    """Export a split-test session as a turn-by-turn Markdown report."""
    lines = [
        f"# Split test: {session.recipe_a.title} vs {session.recipe_b.title}",
        "",
        "## Metadata",
        f"- Created: {session.created_at.strftime('%Y-%m-%d %H:%M')}",
        f"- Model: {session.model_used}",
        f"- Temperature: {session.temperature}",
        f"- Turns: {len(session.messages)}",
        "",
        "## Recipes",
        "",
        _recipe_markdown("A", session.recipe_a),
        _recipe_markdown("B", session.recipe_b),
        "## Conversation",
        "",
    ]

    for message in session.messages:
        lines.extend([
            f"### Turn {message.sequence}",
            "",
            f"**User:** {message.user_text}",
            "",
            f"**Recipe A:** {message.response_a.text}",
            "",
            f"**Recipe B:** {message.response_b.text}",
            "",
        ])
        feedback = message.live_feedback
        if feedback:
            line = f"**Feedback:** preferred {feedback.selected_option.value} ({feedback.reaction.value})"
            if feedback.comment:
                line += f": {feedback.comment}"
            lines.extend([line, ""])

    if session.memory.entries:
        lines.extend(["## Memory", ""])
        lines.extend(f"- [{e.importance}] {e.content}" for e in session.memory.entries)
        lines.append("")

    if session.summary:
        analysis = session.summary.content.get("analysis") or {}
        lines.extend(["## Analysis", ""])
        if analysis.get("summary"):
            lines.extend([analysis["summary"], ""])
        for s in session.summary.improved_prompt_suggestions:
            lines.extend([f"### Suggested prompt: {s.get('title', 'Untitled')}", ""])
            if s.get("purpose"):
                lines.extend([f"_{s['purpose']}_", ""])
            lines.extend(["```", s.get("content", ""), "```", ""])

    return "\n".join(lines)
