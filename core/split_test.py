"""Split-test session engine for Splitbench."""

import asyncio
import logging
from typing import Optional

from analysis.requester import AnalysisRequester
from llm.client import CompletionProvider, CompletionRequest
from memory.extractor import MemoryExtractor
from memory.trace_logger import TraceLogger

from .errors import (
    HistoryStoreError,
    MemoryExtractionFailure,
    MessageNotFound,
    NotReadyForAnalysis,
    ProviderFailure,
    TurnInProgress,
)
from .history_store import HistoryStore
from .models import (
    HistoryRecord,
    LifecycleState,
    MemoryEntry,
    RecipeSnapshot,
    RecordKind,
    SessionMemory,
    SplitOption,
    SplitTestFeedback,
    SplitTestMessage,
    SplitTestSession,
    SplitTestSide,
    pair_key,
    utcnow,
)
from .prompt_manager import PromptManager, RecipeLike, build_system_prompt

logger = logging.getLogger(__name__)

MEMORY_LINE_PREFIX = "Relevant user information: "
DEFAULT_CONTEXT_WINDOW = 15


def rank_memory(entries: list[MemoryEntry]) -> list[MemoryEntry]:
    """
    Memory entries, most important first.

    ``sorted`` is stable, so entries of equal importance keep insertion order.
    """
    return sorted(entries, key=lambda e: e.importance, reverse=True)


def build_memory_preamble(entries: list[MemoryEntry]) -> str:
    """Render memory entries as fact lines, most important first."""
    return "\n".join(f"{MEMORY_LINE_PREFIX}{e.content}" for e in rank_memory(entries))


def with_memory(system_prompt: str, preamble: str) -> str:
    return f"{preamble}\n\n{system_prompt}" if preamble else system_prompt


def build_prior_turns(
    messages: list[SplitTestMessage],
    option: SplitOption,
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> list[dict]:
    """
    Expand the last ``window`` turns into user/assistant pairs for one side.

    Each side only ever sees its own earlier responses.
    """
    turns = []
    for message in messages[-window:] if window > 0 else []:
        turns.append({"role": "user", "content": message.user_text})
        turns.append({"role": "assistant", "content": message.response_for(option).text})
    return turns


class SplitTestEngine:
    """
    Drives paired-recipe conversations.

    Every operation takes the session explicitly and returns a new session
    value; the session passed in is never modified, so a failed operation
    leaves the caller's copy exactly as it was.
    """

    def __init__(
        self,
        prompt_manager: PromptManager,
        provider: CompletionProvider,
        memory_extractor: MemoryExtractor,
        analysis_requester: AnalysisRequester,
        history_store: Optional[HistoryStore] = None,
        trace_logger: Optional[TraceLogger] = None,
        default_model: str = "gpt-4o",
        default_temperature: float = 0.7,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
    ):
        self.prompt_manager = prompt_manager
        self.provider = provider
        self.memory_extractor = memory_extractor
        self.analysis_requester = analysis_requester
        self.history_store = history_store
        self.trace_logger = trace_logger
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.context_window = context_window
        self._in_flight: set[str] = set()

    # -- life cycle ------------------------------------------------------

    def initialize_session(
        self,
        recipe_a: RecipeLike,
        recipe_b: RecipeLike,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> SplitTestSession:
        """
        Start an empty session for a recipe pair.

        The same recipe may be used on both sides. Raises InvalidRecipe when
        either recipe resolves to no prompts. Nothing is persisted here.
        """
        snapshot_a = self.prompt_manager.snapshot_recipe(recipe_a)
        snapshot_b = self.prompt_manager.snapshot_recipe(recipe_b)
        session = SplitTestSession(
            recipe_a=snapshot_a,
            recipe_b=snapshot_b,
            model_used=model or self.default_model,
            temperature=temperature if temperature is not None else self.default_temperature,
        )
        logger.info("Started split test %s: '%s' vs '%s'", session.id, snapshot_a.title, snapshot_b.title)
        return session

    def reset_session(self, session: SplitTestSession) -> SplitTestSession:
        """A brand-new empty session for the same recipe pair."""
        return self.initialize_session(
            session.recipe_a,
            session.recipe_b,
            model=session.model_used,
            temperature=session.temperature,
        )

    # -- turns -----------------------------------------------------------

    async def submit_turn(
        self,
        session: SplitTestSession,
        user_text: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> SplitTestSession:
        """
        Answer one user message with both recipes.

        Memory is extracted first (failures only logged), then both sides are
        called concurrently with the same model and temperature. If either
        call fails, ProviderFailure is raised and nothing is recorded.
        """
        if session is None:
            raise ValueError("A session is required")
        if not user_text or not user_text.strip():
            raise ValueError("User text must not be empty")
        if session.id in self._in_flight:
            raise TurnInProgress(f"Session {session.id} already has a turn in flight")

        self._in_flight.add(session.id)
        try:
            return await self._run_turn(session, user_text, model, temperature)
        finally:
            self._in_flight.discard(session.id)

    async def _run_turn(
        self,
        session: SplitTestSession,
        user_text: str,
        model: Optional[str],
        temperature: Optional[float],
    ) -> SplitTestSession:
        model = model or session.model_used
        temperature = temperature if temperature is not None else session.temperature

        memory = await self._extract_memory(session, user_text)

        # Resolve live prompt texts; edits since the last turn apply now
        snapshot_a = self._resolve(session.recipe_a)
        snapshot_b = self._resolve(session.recipe_b)
        preamble = build_memory_preamble(memory.entries)
        system_a = with_memory(build_system_prompt(snapshot_a.prompts), preamble)
        system_b = with_memory(build_system_prompt(snapshot_b.prompts), preamble)

        request_a = self._build_request(user_text, system_a, snapshot_a, session, SplitOption.A, model, temperature)
        request_b = self._build_request(user_text, system_b, snapshot_b, session, SplitOption.B, model, temperature)

        results = await asyncio.gather(
            self.provider.complete_chat(request_a),
            self.provider.complete_chat(request_b),
            return_exceptions=True,
        )
        for option, result in zip((SplitOption.A, SplitOption.B), results):
            if isinstance(result, Exception):
                logger.error("Recipe %s failed for session %s: %s", option.value, session.id, result)
                raise ProviderFailure(
                    f"Recipe {option.value} failed: {result}",
                    side=option.value,
                    user_text=user_text,
                ) from result
            if isinstance(result, BaseException):
                raise result
        response_a, response_b = results

        message = SplitTestMessage(
            sequence=len(session.messages) + 1,
            user_text=user_text,
            response_a=SplitTestSide(recipe_snapshot=snapshot_a, text=response_a.text),
            response_b=SplitTestSide(recipe_snapshot=snapshot_b, text=response_b.text),
            model_used=model,
            temperature=temperature,
        )
        message = self._trace_turn(session, message, system_a, system_b)

        return session.model_copy(
            update={
                "messages": [*session.messages, message],
                "memory": memory,
            },
            deep=True,
        )

    async def _extract_memory(self, session: SplitTestSession, user_text: str) -> SessionMemory:
        try:
            analysis = await self.memory_extractor.extract(user_text)
        except MemoryExtractionFailure as e:
            logger.warning("Memory extraction skipped for session %s: %s", session.id, e)
            return session.memory

        if not analysis.is_relevant:
            return session.memory

        entry = analysis.to_entry()
        logger.debug("Remembering fact (importance %d) for session %s", entry.importance, session.id)
        return SessionMemory(
            entries=[*session.memory.entries, entry],
            last_analyzed_at=utcnow(),
        )

    def _resolve(self, recipe: RecipeSnapshot) -> RecipeSnapshot:
        # Raises InvalidRecipe when nothing resolves any more
        return self.prompt_manager.snapshot_recipe(recipe)

    def _build_request(
        self,
        user_text: str,
        system_prompt: str,
        recipe: RecipeSnapshot,
        session: SplitTestSession,
        option: SplitOption,
        model: str,
        temperature: float,
    ) -> CompletionRequest:
        return CompletionRequest(
            message=user_text,
            model=model,
            system_prompt=system_prompt,
            prior_turns=build_prior_turns(session.messages, option, self.context_window),
            temperature=temperature,
            frequency_penalty=recipe.frequency_penalty,
            presence_penalty=recipe.presence_penalty,
            max_tokens=recipe.max_tokens,
            top_p=recipe.top_p,
            stop=recipe.stop_sequences,
        )

    def _trace_turn(
        self,
        session: SplitTestSession,
        message: SplitTestMessage,
        system_a: str,
        system_b: str,
    ) -> SplitTestMessage:
        if not self.trace_logger:
            return message
        try:
            trace_id = self.trace_logger.log_turn_trace(session.id, message, system_a, system_b)
        except Exception as e:
            # Tracing failure must not break the turn
            logger.warning("Could not trace turn %s: %s", message.id, e)
            return message
        return message.model_copy(update={"trace_id": trace_id})

    # -- feedback --------------------------------------------------------

    def record_feedback(
        self,
        session: SplitTestSession,
        message_id: str,
        feedback: Optional[SplitTestFeedback],
    ) -> SplitTestSession:
        """
        Set, replace or clear the feedback of one message.

        A feedback with ``deleted=True`` (or None) removes the current one so
        it can be entered again; the message itself is untouched.
        """
        index = next((i for i, m in enumerate(session.messages) if m.id == message_id), None)
        if index is None:
            raise MessageNotFound(message_id)

        target = session.messages[index]
        stored = feedback.model_copy() if feedback is not None else None
        updated = target.model_copy(update={"feedback": stored})

        if stored is not None and not stored.deleted and target.trace_id and self.trace_logger:
            try:
                self.trace_logger.log_feedback(target.trace_id, stored)
            except Exception as e:
                logger.warning("Could not log feedback for message %s: %s", message_id, e)

        messages = list(session.messages)
        messages[index] = updated
        return session.model_copy(update={"messages": messages}, deep=True)

    def clear_feedback(self, session: SplitTestSession, message_id: str) -> SplitTestSession:
        """Mark the message's feedback as deleted."""
        message = session.get_message(message_id)
        if message is None:
            raise MessageNotFound(message_id)
        if message.feedback is None:
            return session
        return self.record_feedback(
            session,
            message_id,
            message.feedback.model_copy(update={"deleted": True, "updated_at": utcnow()}),
        )

    # -- analysis --------------------------------------------------------

    def can_finalize(self, session: Optional[SplitTestSession]) -> bool:
        """True when at least one turn has live (non-deleted) feedback."""
        if session is None:
            return False
        return any(m.live_feedback is not None for m in session.messages)

    async def finalize_session(self, session: SplitTestSession) -> SplitTestSession:
        """
        Request the final analysis and close the session.

        Raises NotReadyForAnalysis when no turn has live feedback, and
        AnalysisFailure (with the raw reply, if any) when the analysis fails.
        On success the closed session is persisted when a store is set.
        """
        if not self.can_finalize(session):
            raise NotReadyForAnalysis("Give feedback on at least one turn before finishing the test")

        structured = await self.analysis_requester.request_analysis(session)
        closed = session.model_copy(update={"summary": structured.to_summary()}, deep=True)

        if self.history_store is not None:
            try:
                self.save_session(closed)
            except HistoryStoreError as e:
                logger.error("Split test %s analyzed but not saved: %s", session.id, e)
                raise HistoryStoreError(f"Analysis done but not saved: {e}", unsaved=closed) from e
        logger.info("Split test %s finalized with %d turns", session.id, len(session.messages))
        return closed

    # -- persistence -----------------------------------------------------

    def save_session(self, session: SplitTestSession) -> bool:
        """Upsert the session as the current record of its recipe pair."""
        store = self._require_store()
        return store.upsert(_session_record(session, LifecycleState.CURRENT))

    def reset_and_save(self, session: SplitTestSession) -> SplitTestSession:
        """
        Replace a session with a fresh one for the same pair.

        The old session moves to the 'last' slot and the new one becomes
        'current' in a single store operation.
        """
        store = self._require_store()
        fresh = self.reset_session(session)
        outgoing = _session_record(session, LifecycleState.LAST, was_reset=True)
        incoming = _session_record(fresh, LifecycleState.CURRENT)
        store.supersede_and_insert(outgoing, incoming)
        return fresh

    def load_current(self, recipe_a_id: str, recipe_b_id: str) -> Optional[SplitTestSession]:
        """The stored current session for a recipe pair, if any."""
        record = self._require_store().get(pair_key(recipe_a_id, recipe_b_id), LifecycleState.CURRENT)
        if record is None:
            return None
        return SplitTestSession.model_validate(record.payload)

    def list_sessions(self) -> list[SplitTestSession]:
        """Every authoritative stored split-test session, newest first."""
        records = self._require_store().list_records(RecordKind.SPLIT_TEST)
        return [SplitTestSession.model_validate(r.payload) for r in records]

    def _require_store(self) -> HistoryStore:
        if self.history_store is None:
            raise RuntimeError("SplitTestEngine has no history store configured")
        return self.history_store


def _session_record(
    session: SplitTestSession,
    state: LifecycleState,
    was_reset: bool = False,
) -> HistoryRecord:
    return HistoryRecord(
        id=session.id,
        kind=RecordKind.SPLIT_TEST,
        related_id=session.pair_key,
        lifecycle_state=state,
        payload=session.model_dump(mode="json"),
        created_at=utcnow(),
        was_reset=was_reset,
    )
