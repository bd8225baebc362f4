"""History page: timeline, analytics and export."""

from datetime import datetime, time

import pandas as pd
import streamlit as st

from app.components.diff_viewer import render_analysis
from app.state import build_chat_manager, get_chat, init_state, set_chat, set_split_test
from core.database import init_db
from core.export import export_split_test_json, export_split_test_markdown
from core.history_store import HistoryStore
from core.models import ChatSession, RecordKind, SplitTestSession
from core.timeline import (
    ChatEvent,
    SplitTestEvent,
    build_timeline,
    compute_analytics,
    event_title,
    filter_events,
)

# Initialize
init_state()
init_db()

st.title("History")

store = HistoryStore()
events = build_timeline(store.list_records())

if not events:
    st.info("No history yet. Chats and split tests show up here once saved.")
    st.stop()

# Sidebar: filters
st.sidebar.header("Filters")
search = st.sidebar.text_input("Search")
kind_labels = {RecordKind.CHAT: "Chats", RecordKind.SPLIT_TEST: "Split tests"}
kinds = st.sidebar.multiselect(
    "Show",
    options=list(kind_labels),
    default=list(kind_labels),
    format_func=kind_labels.get,
)
oldest = min(e.created_at for e in events).date()
date_range = st.sidebar.date_input("Date range", value=(oldest, datetime.now().date()))

start = end = None
if isinstance(date_range, tuple) and len(date_range) == 2:
    start = datetime.combine(date_range[0], time.min)
    end = datetime.combine(date_range[1], time.max)

filtered = filter_events(events, search=search, start=start, end=end, kinds=set(kinds))

# Analytics
analytics = compute_analytics(filtered)
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Chats", analytics.chat_count)
with col2:
    st.metric("Avg messages / chat", f"{analytics.average_messages_per_chat:.1f}")
with col3:
    st.metric("Split tests", analytics.split_test_count)
with col4:
    st.metric("A vs B", f"{analytics.preferences.get('A', 0)} : {analytics.preferences.get('B', 0)}")

st.caption(f"Likes: {analytics.reactions.get('like', 0)} | Dislikes: {analytics.reactions.get('dislike', 0)}")

df = pd.DataFrame(
    [
        {
            "When": e.created_at,
            "What": event_title(e),
            "Slot": e.lifecycle_state.value,
            "Size": e.message_count if isinstance(e, ChatEvent) else e.turn_count,
        }
        for e in filtered
    ]
)
st.dataframe(df, use_container_width=True, hide_index=True)

st.markdown("---")

for event in filtered:
    with st.expander(f"{event.created_at.strftime('%Y-%m-%d %H:%M')} | {event_title(event)} ({event.lifecycle_state.value})"):
        record = store.get_record(event.record_id)
        if record is None:
            st.warning("This record was replaced in the meantime.")
            continue

        if isinstance(event, ChatEvent):
            chat = ChatSession.model_validate(record.payload)
            for message in chat.messages:
                st.markdown(f"**{message.role}:** {message.content}")
            if event.was_restored:
                st.caption("Restored chat")
            current = get_chat()
            if current is not None and current.recipe.id == chat.recipe.id and current.id != chat.id:
                if st.button("Restore this chat", key=f"restore_{event.record_id}"):
                    set_chat(build_chat_manager().restore_chat(current, record))
                    st.switch_page("pages/3_chat.py")
            elif st.button("Open in chat", key=f"open_{event.record_id}"):
                set_chat(chat)
                st.switch_page("pages/3_chat.py")

        elif isinstance(event, SplitTestEvent):
            session = SplitTestSession.model_validate(record.payload)
            st.markdown(
                f"{event.turn_count} turns | prefer A: {event.preferences.get('A', 0)} | "
                f"prefer B: {event.preferences.get('B', 0)}"
            )
            if session.summary:
                render_analysis(session.summary.content, session.summary.improved_prompt_suggestions)

            col1, col2, col3 = st.columns(3)
            with col1:
                st.download_button(
                    "Markdown",
                    data=export_split_test_markdown(session),
                    file_name=f"split_test_{session.id[:8]}.md",
                    mime="text/markdown",
                    key=f"md_{event.record_id}",
                )
            with col2:
                st.download_button(
                    "JSON",
                    data=export_split_test_json(session),
                    file_name=f"split_test_{session.id[:8]}.json",
                    mime="application/json",
                    key=f"json_{event.record_id}",
                )
            with col3:
                if st.button("Open in split test", key=f"open_{event.record_id}"):
                    set_split_test(session)
                    st.switch_page("pages/2_split_test.py")

        if st.button("Delete", key=f"delete_{event.record_id}"):
            store.delete_record(event.record_id)
            st.rerun()
