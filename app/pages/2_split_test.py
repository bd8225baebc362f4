"""Split test page: one conversation answered by two recipes."""

import asyncio

import streamlit as st

from app.components.diff_viewer import render_analysis
from app.components.feedback_card import render_feedback_card, render_feedback_summary, render_turn
from app.state import (
    build_split_test_engine,
    get_llm_config,
    get_split_test,
    get_state,
    init_state,
    set_api_key,
    set_split_test,
    set_state,
)
from core.database import init_db
from core.errors import (
    AnalysisFailure,
    HistoryStoreError,
    InvalidRecipe,
    NotReadyForAnalysis,
    ProviderFailure,
    TurnInProgress,
)
from core.export import export_split_test_json, export_split_test_markdown
from core.prompt_manager import PromptManager
from core.split_test import rank_memory
from llm.config import PROVIDER_KEY_VARS
from llm.providers import MODEL_CATALOG

# Initialize
init_state()
init_db()

st.title("Split Test")

prompt_manager = PromptManager()
session = get_split_test()
engine = build_split_test_engine(session)

# Sidebar: credentials
with st.sidebar:
    st.header("API Keys")
    config = get_llm_config()
    for provider in PROVIDER_KEY_VARS:
        if config.api_key_for(provider):
            st.caption(f"{provider}: configured")
            continue
        key = st.text_input(f"{provider} API key", type="password", key=f"api_key_{provider}")
        if key:
            set_api_key(provider, key)
            st.rerun()

# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------

if session is None:
    recipes = [r for r in prompt_manager.list_recipes() if prompt_manager.resolve_recipe_prompts(r)]
    if not recipes:
        st.warning("You need at least one recipe with prompts to run a split test.")
        st.page_link("pages/1_recipes.py", label="Go to Recipes")
        st.stop()

    recipe_titles = {r.id: r.title for r in recipes}
    model_options = [m.value for m in MODEL_CATALOG]

    col1, col2 = st.columns(2)
    with col1:
        recipe_a_id = st.selectbox("Recipe A", options=list(recipe_titles), format_func=recipe_titles.get)
    with col2:
        recipe_b_id = st.selectbox(
            "Recipe B",
            options=list(recipe_titles),
            index=min(1, len(recipes) - 1),
            format_func=recipe_titles.get,
        )

    col1, col2 = st.columns(2)
    with col1:
        default_model = engine.default_model if engine.default_model in model_options else model_options[0]
        model = st.selectbox("Model (shared by both sides)", options=model_options, index=model_options.index(default_model))
    with col2:
        temperature = st.slider("Temperature", 0.0, 2.0, float(engine.default_temperature), 0.1)

    saved = engine.load_current(recipe_a_id, recipe_b_id)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Start Split Test", type="primary", use_container_width=True):
            try:
                new_session = engine.initialize_session(
                    prompt_manager.get_recipe(recipe_a_id),
                    prompt_manager.get_recipe(recipe_b_id),
                    model=model,
                    temperature=temperature,
                )
            except InvalidRecipe as e:
                st.error(str(e))
                st.stop()
            set_split_test(new_session)
            st.rerun()
    with col2:
        if saved and st.button(
            f"Resume saved test ({len(saved.messages)} turns)",
            use_container_width=True,
        ):
            set_split_test(saved)
            st.rerun()
    st.stop()

# ---------------------------------------------------------------------------
# Active session
# ---------------------------------------------------------------------------

st.markdown(f"**Recipe A:** {session.recipe_a.title} | **Recipe B:** {session.recipe_b.title}")
st.caption(f"Model: {session.model_used} | Temperature: {session.temperature}")

with st.expander(f"Session memory ({len(session.memory.entries)})"):
    if not session.memory.entries:
        st.caption("Nothing remembered about the user yet.")
    for entry in rank_memory(session.memory.entries):
        st.markdown(f"**[{entry.importance}]** {entry.content}")
        if entry.reason:
            st.caption(entry.reason)


def persist(updated) -> None:
    """Keep the updated session in state and in the history store."""
    set_split_test(updated)
    try:
        engine.save_session(updated)
    except HistoryStoreError as e:
        st.warning(f"Could not save to history: {e}")


render_feedback_summary(session.messages)
st.markdown("---")

for message in session.messages:
    render_turn(message)
    action = render_feedback_card(message, card_key=f"fb_{message.id}")
    if action is not None:
        if action["action"] == "delete":
            updated = engine.clear_feedback(session, message.id)
        else:
            updated = engine.record_feedback(session, message.id, action["feedback"])
        persist(updated)
        st.rerun()
    st.markdown("---")

last_error = get_state("last_error")
if last_error:
    st.error(last_error)

if not session.is_closed:
    with st.form("turn_input", clear_on_submit=True):
        user_text = st.text_area("Your message", value=get_state("pending_user_text", ""))
        submitted = st.form_submit_button("Send to both recipes", type="primary")

    if submitted and user_text.strip():
        with st.spinner("Waiting for both recipes..."):
            try:
                updated = asyncio.run(engine.submit_turn(session, user_text))
            except ProviderFailure as e:
                set_state("last_error", str(e))
                set_state("pending_user_text", e.user_text)
            except (InvalidRecipe, TurnInProgress) as e:
                set_state("last_error", str(e))
                set_state("pending_user_text", user_text)
            else:
                set_state("last_error", None)
                set_state("pending_user_text", "")
                persist(updated)
        st.rerun()

# ---------------------------------------------------------------------------
# Finish / reset / export
# ---------------------------------------------------------------------------

col1, col2, col3 = st.columns(3)

with col1:
    if st.button(
        "Finish & Analyze",
        type="primary",
        disabled=not engine.can_finalize(session),
        use_container_width=True,
    ):
        with st.spinner("Analyzing your preferences..."):
            try:
                closed = asyncio.run(engine.finalize_session(session))
            except NotReadyForAnalysis as e:
                st.warning(str(e))
            except AnalysisFailure as e:
                set_state("last_error", str(e))
                set_state("analysis_raw_text", e.raw_text)
            except HistoryStoreError as e:
                set_state("last_error", str(e))
                if e.unsaved is not None:
                    set_split_test(e.unsaved)
            else:
                set_state("last_error", None)
                set_state("analysis_raw_text", None)
                set_split_test(closed)
        st.rerun()

with col2:
    if st.button("Reset", use_container_width=True):
        try:
            fresh = engine.reset_and_save(session) if session.messages else engine.reset_session(session)
        except HistoryStoreError as e:
            st.error(str(e))
        else:
            set_split_test(fresh)
            st.rerun()

with col3:
    if st.button("Close", use_container_width=True):
        set_split_test(None)
        st.rerun()

raw_text = get_state("analysis_raw_text")
if raw_text:
    with st.expander("Raw analysis response"):
        st.code(raw_text, language=None)

if session.summary:
    st.header("Analysis")
    render_analysis(session.summary.content, session.summary.improved_prompt_suggestions)

if session.messages:
    st.header("Export")
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "Export (Markdown)",
            data=export_split_test_markdown(session),
            file_name=f"split_test_{session.id[:8]}.md",
            mime="text/markdown",
            use_container_width=True,
        )
    with col2:
        st.download_button(
            "Export (JSON)",
            data=export_split_test_json(session),
            file_name=f"split_test_{session.id[:8]}.json",
            mime="application/json",
            use_container_width=True,
        )
