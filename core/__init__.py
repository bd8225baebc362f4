# Core application logic
# The engines (split_test, chat_manager) depend on the llm/memory/analysis
# packages, which import core.models; import them from their modules.
from .models import (
    ChatSession,
    HistoryRecord,
    LifecycleState,
    Prompt,
    Recipe,
    RecordKind,
    SplitTestFeedback,
    SplitTestSession,
)
from .database import configure_engine, get_engine, init_db
from .history_store import HistoryStore
from .prompt_manager import PromptManager

__all__ = [
    "ChatSession",
    "HistoryRecord",
    "LifecycleState",
    "Prompt",
    "Recipe",
    "RecordKind",
    "SplitTestFeedback",
    "SplitTestSession",
    "configure_engine",
    "get_engine",
    "init_db",
    "HistoryStore",
    "PromptManager",
]
