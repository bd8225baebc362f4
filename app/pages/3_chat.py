"""Chat page: talk to a single recipe."""

import asyncio

import streamlit as st

from app.state import build_chat_manager, get_chat, get_state, init_state, set_chat, set_state
from core.database import init_db
from core.errors import HistoryStoreError, InvalidRecipe, ProviderFailure
from core.models import LifecycleState
from core.prompt_manager import PromptManager

# Initialize
init_state()
init_db()

st.title("Chat")

prompt_manager = PromptManager()
chat_manager = build_chat_manager()
chat = get_chat()

if chat is None:
    recipes = [r for r in prompt_manager.list_recipes() if prompt_manager.resolve_recipe_prompts(r)]
    if not recipes:
        st.warning("You need a recipe with prompts to chat.")
        st.page_link("pages/1_recipes.py", label="Go to Recipes")
        st.stop()

    recipe_titles = {r.id: r.title for r in recipes}
    recipe_id = st.selectbox("Recipe", options=list(recipe_titles), format_func=recipe_titles.get)
    stored = chat_manager.load_chats(recipe_id)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("New Chat", type="primary", use_container_width=True):
            try:
                set_chat(chat_manager.start_chat(prompt_manager.get_recipe(recipe_id)))
            except InvalidRecipe as e:
                st.error(str(e))
                st.stop()
            st.rerun()
    with col2:
        current = stored.get(LifecycleState.CURRENT)
        if current and st.button(f"Resume chat ({len(current.messages)} messages)", use_container_width=True):
            set_chat(current)
            st.rerun()
    st.stop()

st.markdown(f"**Recipe:** {chat.recipe.title}")
st.caption(f"Model: {chat.settings.model} | Temperature: {chat.settings.temperature}")

for message in chat.messages:
    with st.chat_message(message.role):
        st.markdown(message.content)

last_error = get_state("last_error")
if last_error:
    st.error(last_error)

text = st.chat_input("Message")
if text:
    with st.spinner("Thinking..."):
        try:
            updated = asyncio.run(chat_manager.send_message(chat, text))
        except ProviderFailure as e:
            set_state("last_error", str(e))
        else:
            set_state("last_error", None)
            set_chat(updated)
            try:
                chat_manager.save_chat(updated)
            except HistoryStoreError as e:
                set_state("last_error", f"Could not save chat: {e}")
    st.rerun()

col1, col2, col3, col4 = st.columns(4)

with col1:
    if st.button("Delete last exchange", disabled=not chat.messages, use_container_width=True):
        updated = chat_manager.delete_last_exchange(chat)
        set_chat(updated)
        chat_manager.save_chat(updated)
        st.rerun()

with col2:
    if st.button("Reset", disabled=not chat.messages, use_container_width=True):
        set_chat(chat_manager.reset_chat(chat))
        st.rerun()

with col3:
    archived = chat_manager.history_store.get(chat.recipe.id, LifecycleState.LAST)
    if st.button("Restore previous", disabled=archived is None, use_container_width=True):
        set_chat(chat_manager.restore_chat(chat, archived))
        st.rerun()

with col4:
    if st.button("Close", use_container_width=True):
        set_chat(None)
        st.rerun()
