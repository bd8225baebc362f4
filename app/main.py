"""Main entry point for Splitbench - Split-Test Prompt Workbench."""

import logging
import os
import sys
from pathlib import Path

# Ensure project root is on the module path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import streamlit as st
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize database
from core.database import init_db

init_db()

# Initialize MLflow tracing when enabled
from memory.mlflow_config import init_mlflow, tracing_enabled

if tracing_enabled():
    init_mlflow()

# Page configuration
st.set_page_config(
    page_title="Splitbench - Split-Test Prompt Workbench",
    page_icon="🧪",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Initialize session state
from app.state import get_split_test, init_state

init_state()

# Main page content
st.title("Splitbench")
st.subheader("Split-Test Prompt Workbench")

st.markdown("""
Compare two prompt recipes side by side on the same conversation and let the
analysis suggest better system instructions.

### How it works

1. **Recipes**: Write prompts and bundle them into recipes
2. **Split Test**: Chat with recipe A and recipe B at once and pick the better reply each turn
3. **Finish**: Request an analysis of your preferences with concrete rule changes
4. **History**: Browse past chats and split tests, export them, restore older chats

### Getting Started

Use the sidebar to navigate between pages:

- **Recipes**: Manage prompts and recipes
- **Split Test**: Run an A/B conversation
- **Chat**: Talk to a single recipe
- **History**: Timeline, analytics and export
""")

# Show current split test info if one is active
session = get_split_test()
if session:
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Current Split Test")
    st.sidebar.markdown(f"**{session.recipe_a.title}** vs **{session.recipe_b.title}**")
    st.sidebar.markdown(f"Turns: {len(session.messages)}")
    if session.is_closed:
        st.sidebar.markdown("Status: finished")
