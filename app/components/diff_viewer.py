"""Diff viewer component for suggested prompt changes."""

import streamlit as st

from core.prompt_manager import generate_diff


def render_diff_viewer(
    old_prompt: str,
    new_prompt: str,
    show_legend: bool = True,
) -> None:
    """
    Render a diff view between two prompt texts.

    Args:
        old_prompt: The current prompt content
        new_prompt: The suggested prompt content
        show_legend: Whether to show the color legend
    """
    if show_legend:
        col1, col2, col3 = st.columns(3)
        with col1:
            st.markdown(
                '<span style="background-color: #d4edda; padding: 2px 6px; border-radius: 3px;">+ Added</span>',
                unsafe_allow_html=True,
            )
        with col2:
            st.markdown(
                '<span style="background-color: #f8d7da; padding: 2px 6px; border-radius: 3px;">- Removed</span>',
                unsafe_allow_html=True,
            )
        with col3:
            st.markdown('<span style="padding: 2px 6px;">Unchanged</span>', unsafe_allow_html=True)

    html_parts = ['<div style="font-family: monospace; white-space: pre-wrap; line-height: 1.6;">']
    styles = {
        "added": ("#d4edda", "#155724", "+"),
        "removed": ("#f8d7da", "#721c24", "-"),
    }
    for line in generate_diff(old_prompt, new_prompt):
        text = line["text"].replace("<", "&lt;").replace(">", "&gt;")
        background, color, marker = styles.get(line["type"], ("transparent", "#666", " "))
        html_parts.append(
            f'<div style="background-color: {background}; padding: 2px 4px; margin: 1px 0;">'
            f'<span style="color: {color};">{marker} {text}</span></div>'
        )
    html_parts.append("</div>")

    st.markdown("".join(html_parts), unsafe_allow_html=True)


def render_prompt_changes(recipe_label: str, changes: list[dict]) -> None:
    """Render the analyst's per-section changes for one recipe."""
    if not changes:
        return

    st.subheader(f"Recipe {recipe_label}")
    for change in changes:
        action = change.get("action", "MODIFY")
        with st.expander(f"{change.get('promptTitle', 'Untitled')} ({action})"):
            if change.get("explanation"):
                st.markdown(change["explanation"])
            if action == "MODIFY":
                render_diff_viewer(
                    change.get("currentContent", ""),
                    change.get("suggestedContent", ""),
                    show_legend=False,
                )
            for item in change.get("changes") or []:
                st.markdown(f"- **{item.get('type', '')}**: {item.get('explanation', '')}")


def render_analysis(summary_content: dict, suggestions: list[dict]) -> None:
    """Render a finished split test's analysis."""
    analysis = summary_content.get("analysis") or {}
    if analysis.get("summary"):
        st.markdown("**Summary**")
        st.markdown(analysis["summary"])
    if analysis.get("patternsFavoredResponses"):
        st.markdown("**Patterns in preferred replies**")
        st.markdown(analysis["patternsFavoredResponses"])

    col_a, col_b = st.columns(2)
    with col_a:
        st.markdown("**Recipe A**")
        st.markdown(analysis.get("recipeAAnalysis", ""))
    with col_b:
        st.markdown("**Recipe B**")
        st.markdown(analysis.get("recipeBAnalysis", ""))

    changes = summary_content.get("promptChanges") or {}
    render_prompt_changes("A", changes.get("recipeA") or [])
    render_prompt_changes("B", changes.get("recipeB") or [])

    if suggestions:
        st.subheader("Suggested new prompts")
        for s in suggestions:
            with st.expander(f"{s.get('title', 'Untitled')} ({s.get('implementation', 'BOTH')})"):
                if s.get("purpose"):
                    st.markdown(f"_{s['purpose']}_")
                st.code(s.get("content", ""), language=None)
                if s.get("placement"):
                    st.caption(f"Placement: {s['placement']}")
