"""Reusable A/B feedback card UI component."""

from typing import Optional

import streamlit as st

from core.models import Reaction, SplitOption, SplitTestFeedback, SplitTestMessage


def render_turn(message: SplitTestMessage) -> None:
    """Render one split-test turn: the user message and both replies."""
    st.markdown(f"**Turn {message.sequence}**")
    st.info(message.user_text)

    col_a, col_b = st.columns(2)
    selected = message.live_feedback.selected_option if message.live_feedback else None
    with col_a:
        st.markdown("**Recipe A**" + (" ✅" if selected == SplitOption.A else ""))
        st.success(message.response_a.text)
    with col_b:
        st.markdown("**Recipe B**" + (" ✅" if selected == SplitOption.B else ""))
        st.success(message.response_b.text)


def render_feedback_card(message: SplitTestMessage, card_key: str = "feedback") -> Optional[dict]:
    """
    Render the feedback controls for a turn.

    Returns an action dict when the user submitted or deleted feedback:
    ``{"action": "set", "feedback": SplitTestFeedback}`` or
    ``{"action": "delete"}``. Returns None otherwise.
    """
    feedback = message.live_feedback

    if feedback is not None:
        note = f"Preferred {feedback.selected_option.value} ({feedback.reaction.value})"
        if feedback.comment:
            note += f": {feedback.comment}"
        st.caption(note)
        if st.button("Delete feedback", key=f"{card_key}_delete"):
            return {"action": "delete"}
        return None

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        option = st.radio(
            "Better reply",
            options=[o.value for o in SplitOption],
            horizontal=True,
            key=f"{card_key}_option",
        )
    with col2:
        reaction = st.radio(
            "Reaction",
            options=[r.value for r in Reaction],
            horizontal=True,
            key=f"{card_key}_reaction",
        )
    with col3:
        comment = st.text_input(
            "Why? (optional)",
            key=f"{card_key}_comment",
            placeholder="e.g., B acknowledged the context before asking",
        )

    if st.button("Save feedback", key=f"{card_key}_save", type="primary"):
        return {
            "action": "set",
            "feedback": SplitTestFeedback(
                selected_option=SplitOption(option),
                reaction=Reaction(reaction),
                comment=comment or "",
            ),
        }
    return None


def render_feedback_summary(messages: list[SplitTestMessage]) -> None:
    """Render counts of A/B preferences across a session."""
    live = [m.live_feedback for m in messages if m.live_feedback is not None]
    prefer_a = sum(1 for f in live if f.selected_option == SplitOption.A)
    prefer_b = len(live) - prefer_a
    pending = len(messages) - len(live)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Prefer A", prefer_a)
    with col2:
        st.metric("Prefer B", prefer_b)
    with col3:
        st.metric("Pending", pending)

    if messages:
        st.progress(len(live) / len(messages))
