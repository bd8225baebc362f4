"""Recipes page for managing prompts and recipes."""

import streamlit as st

from app.state import init_state, get_state, set_state
from core.database import init_db
from core.prompt_manager import PromptManager
from llm.providers import MODEL_CATALOG

# Initialize
init_state()
init_db()

st.title("Prompts & Recipes")

prompt_manager = PromptManager()

prompts_tab, recipes_tab = st.tabs(["Prompts", "Recipes"])

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

with prompts_tab:
    st.header("New Prompt")
    with st.form("new_prompt", clear_on_submit=True):
        title = st.text_input("Title", placeholder="e.g., Tone")
        content = st.text_area("Content", height=150, placeholder="e.g., Always answer briefly and warmly.")
        if st.form_submit_button("Create Prompt", type="primary"):
            if not title.strip() or not content.strip():
                st.error("Title and content are required.")
            else:
                prompt_manager.create_prompt(title.strip(), content)
                st.success(f"Prompt '{title}' created")
                st.rerun()

    st.header("Prompts")
    prompts = prompt_manager.list_prompts()
    if not prompts:
        st.info("No prompts yet.")

    for prompt in prompts:
        with st.expander(prompt.title):
            if get_state("editing_prompt_id") == prompt.id:
                new_title = st.text_input("Title", value=prompt.title, key=f"title_{prompt.id}")
                new_content = st.text_area("Content", value=prompt.content, height=200, key=f"content_{prompt.id}")
                col1, col2 = st.columns(2)
                with col1:
                    if st.button("Save", key=f"save_{prompt.id}", type="primary"):
                        prompt_manager.update_prompt(prompt.id, title=new_title, content=new_content)
                        set_state("editing_prompt_id", None)
                        st.rerun()
                with col2:
                    if st.button("Cancel", key=f"cancel_{prompt.id}"):
                        set_state("editing_prompt_id", None)
                        st.rerun()
            else:
                st.code(prompt.content, language=None)
                if prompt.example_messages:
                    st.markdown("**Example messages**")
                    for example in prompt.example_messages:
                        st.markdown(f"- {example}")

                example = st.text_input("Add example message", key=f"example_{prompt.id}")
                col1, col2, col3 = st.columns(3)
                with col1:
                    if st.button("Add Example", key=f"add_example_{prompt.id}") and example.strip():
                        prompt_manager.add_example_message(prompt.id, example.strip())
                        st.rerun()
                with col2:
                    if st.button("Edit", key=f"edit_{prompt.id}"):
                        set_state("editing_prompt_id", prompt.id)
                        st.rerun()
                with col3:
                    if st.button("Delete", key=f"delete_{prompt.id}"):
                        prompt_manager.delete_prompt(prompt.id)
                        st.rerun()

# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

with recipes_tab:
    prompts = prompt_manager.list_prompts()
    prompt_titles = {p.id: p.title for p in prompts}
    model_options = [m.value for m in MODEL_CATALOG]

    st.header("New Recipe")
    with st.form("new_recipe", clear_on_submit=True):
        title = st.text_input("Title", placeholder="e.g., Concise coach")
        description = st.text_input("Description (optional)")
        selected = st.multiselect(
            "Prompts (in order)",
            options=list(prompt_titles.keys()),
            format_func=lambda pid: prompt_titles[pid],
        )

        col1, col2 = st.columns(2)
        with col1:
            model = st.selectbox("Model", options=model_options, index=model_options.index("gpt-4o"))
            temperature = st.slider("Temperature", 0.0, 2.0, 0.7, 0.1)
            max_tokens = st.number_input("Max tokens (0 = default)", min_value=0, value=0, step=50)
        with col2:
            frequency_penalty = st.slider("Frequency penalty", -2.0, 2.0, 0.0, 0.1)
            presence_penalty = st.slider("Presence penalty", -2.0, 2.0, 0.0, 0.1)
            stop = st.text_input("Stop sequences (comma separated)")

        if st.form_submit_button("Create Recipe", type="primary"):
            if not title.strip():
                st.error("Title is required.")
            elif not selected:
                st.error("Select at least one prompt.")
            else:
                prompt_manager.create_recipe(
                    title=title.strip(),
                    prompt_ids=selected,
                    description=description or None,
                    model=model,
                    temperature=temperature,
                    frequency_penalty=frequency_penalty or None,
                    presence_penalty=presence_penalty or None,
                    stop_sequences=[s.strip() for s in stop.split(",") if s.strip()] or None,
                    max_tokens=int(max_tokens) or None,
                )
                st.success(f"Recipe '{title}' created")
                st.rerun()

    st.header("Recipes")
    recipes = prompt_manager.list_recipes()
    if not recipes:
        st.info("No recipes yet.")

    for recipe in recipes:
        resolved = prompt_manager.resolve_recipe_prompts(recipe)
        missing = len(recipe.prompt_ids) - len(resolved)
        label = recipe.title if not missing else f"{recipe.title} ({missing} missing prompt(s))"

        with st.expander(label):
            if recipe.description:
                st.markdown(recipe.description)
            st.caption(f"Model: {recipe.model or 'default'} | Temperature: {recipe.temperature}")

            if not resolved:
                st.warning("This recipe has no resolvable prompts and cannot be used.")

            if get_state("editing_recipe_id") == recipe.id:
                order = st.multiselect(
                    "Prompts (in order)",
                    options=list(prompt_titles.keys()),
                    default=[pid for pid in recipe.prompt_ids if pid in prompt_titles],
                    format_func=lambda pid: prompt_titles[pid],
                    key=f"order_{recipe.id}",
                )
                col1, col2 = st.columns(2)
                with col1:
                    if st.button("Save", key=f"save_recipe_{recipe.id}", type="primary"):
                        prompt_manager.update_recipe(recipe.id, prompt_ids=order)
                        set_state("editing_recipe_id", None)
                        st.rerun()
                with col2:
                    if st.button("Cancel", key=f"cancel_recipe_{recipe.id}"):
                        set_state("editing_recipe_id", None)
                        st.rerun()
            else:
                st.markdown("**Effective system prompt**")
                st.code(prompt_manager.get_system_prompt(recipe) or "(empty)", language=None)

                col1, col2 = st.columns(2)
                with col1:
                    if st.button("Edit Prompts", key=f"edit_recipe_{recipe.id}"):
                        set_state("editing_recipe_id", recipe.id)
                        st.rerun()
                with col2:
                    if st.button("Delete Recipe", key=f"delete_recipe_{recipe.id}"):
                        prompt_manager.delete_recipe(recipe.id)
                        st.rerun()
