"""Streamlit session state helpers for Splitbench."""

import logging
from typing import Any, Optional

import streamlit as st

from analysis.requester import AnalysisRequester
from core.chat_manager import ChatManager
from core.history_store import HistoryStore
from core.models import ChatSession, SplitTestSession
from core.prompt_manager import PromptManager
from core.split_test import SplitTestEngine
from llm.config import LLMConfig
from llm.providers import ProviderRouter
from memory.extractor import MemoryExtractor
from memory.mlflow_config import get_or_create_experiment, tracing_enabled
from memory.trace_logger import TraceLogger

logger = logging.getLogger(__name__)


def init_state() -> None:
    """Initialize all session state variables."""
    defaults = {
        # Credentials typed into the sidebar, per provider
        "api_keys": {},
        # Split test
        "split_test_session": None,
        "pending_user_text": "",
        "last_error": None,
        "analysis_raw_text": None,
        # Chat
        "chat_session": None,
        # Editors
        "editing_prompt_id": None,
        "editing_recipe_id": None,
    }

    for key, default in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = default


def get_state(key: str, default: Any = None) -> Any:
    """Get a value from session state."""
    init_state()
    return st.session_state.get(key, default)


def set_state(key: str, value: Any) -> None:
    """Set a value in session state."""
    init_state()
    st.session_state[key] = value


def get_split_test() -> Optional[SplitTestSession]:
    return get_state("split_test_session")


def set_split_test(session: Optional[SplitTestSession]) -> None:
    set_state("split_test_session", session)


def get_chat() -> Optional[ChatSession]:
    return get_state("chat_session")


def set_chat(chat: Optional[ChatSession]) -> None:
    set_state("chat_session", chat)


def set_api_key(provider: str, api_key: str) -> None:
    """Store a provider API key typed in the UI."""
    keys = dict(get_state("api_keys", {}))
    keys[provider] = api_key
    set_state("api_keys", keys)


def get_llm_config() -> LLMConfig:
    """Environment config with any keys typed in the UI layered on top."""
    config = LLMConfig.from_env()
    for provider, api_key in get_state("api_keys", {}).items():
        if api_key:
            config = config.with_api_key(provider, api_key)
    return config


def build_split_test_engine(session: Optional[SplitTestSession] = None) -> SplitTestEngine:
    """Wire a split-test engine from the current configuration."""
    config = get_llm_config()
    router = ProviderRouter(config)
    return SplitTestEngine(
        prompt_manager=PromptManager(),
        provider=router,
        memory_extractor=MemoryExtractor(router, model=config.memory_model),
        analysis_requester=AnalysisRequester(router, model=config.analysis_model),
        history_store=HistoryStore(),
        trace_logger=_trace_logger_for(session),
        default_model=config.default_model,
        default_temperature=config.default_temperature,
    )


def build_chat_manager() -> ChatManager:
    config = get_llm_config()
    return ChatManager(
        prompt_manager=PromptManager(),
        provider=ProviderRouter(config),
        history_store=HistoryStore(),
        default_model=config.default_model,
        default_temperature=config.default_temperature,
    )


def _trace_logger_for(session: Optional[SplitTestSession]) -> Optional[TraceLogger]:
    if session is None or not tracing_enabled():
        return None
    try:
        experiment_id = get_or_create_experiment(
            session.recipe_a.title,
            session.recipe_b.title,
            session.pair_key,
        )
        return TraceLogger(experiment_id)
    except Exception as e:
        logger.warning("MLflow tracing unavailable: %s", e)
        return None
