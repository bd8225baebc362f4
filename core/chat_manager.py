"""Single-recipe chat sessions backed by the history store."""

import logging
from typing import Optional

from llm.client import CompletionProvider, CompletionRequest

from .errors import ProviderFailure
from .history_store import HistoryStore
from .models import (
    ChatMessage,
    ChatSession,
    ChatSettings,
    HistoryRecord,
    LifecycleState,
    RecordKind,
    utcnow,
)
from .prompt_manager import PromptManager, RecipeLike, build_system_prompt

logger = logging.getLogger(__name__)

CHAT_CONTEXT_MESSAGES = 10


class ChatManager:
    """Manages chat conversations with a single recipe."""

    def __init__(
        self,
        prompt_manager: PromptManager,
        provider: CompletionProvider,
        history_store: HistoryStore,
        default_model: str = "gpt-4o",
        default_temperature: float = 0.7,
    ):
        self.prompt_manager = prompt_manager
        self.provider = provider
        self.history_store = history_store
        self.default_model = default_model
        self.default_temperature = default_temperature

    def start_chat(
        self,
        recipe: RecipeLike,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> ChatSession:
        """Start an empty chat. Raises InvalidRecipe when no prompt resolves."""
        snapshot = self.prompt_manager.snapshot_recipe(recipe)
        settings = ChatSettings(
            model=model or snapshot.model or self.default_model,
            temperature=temperature if temperature is not None else snapshot.temperature,
        )
        return ChatSession(recipe=snapshot, settings=settings)

    async def send_message(self, chat: ChatSession, text: str) -> ChatSession:
        """
        Send a user message and append the user/assistant pair.

        The last ten messages go along as context. On a provider failure
        nothing is appended and ProviderFailure carries the text back.
        """
        if not text or not text.strip():
            raise ValueError("Message must not be empty")

        snapshot = self.prompt_manager.snapshot_recipe(chat.recipe)
        request = CompletionRequest(
            message=text,
            model=chat.settings.model,
            system_prompt=build_system_prompt(snapshot.prompts),
            prior_turns=[
                {"role": m.role, "content": m.content}
                for m in chat.messages[-CHAT_CONTEXT_MESSAGES:]
            ],
            temperature=chat.settings.temperature,
            frequency_penalty=snapshot.frequency_penalty,
            presence_penalty=snapshot.presence_penalty,
            max_tokens=snapshot.max_tokens,
            top_p=snapshot.top_p,
            stop=snapshot.stop_sequences,
        )
        try:
            response = await self.provider.complete_chat(request)
        except Exception as e:
            logger.error("Chat %s completion failed: %s", chat.id, e)
            raise ProviderFailure(f"Chat completion failed: {e}", user_text=text) from e

        next_sequence = len(chat.messages) + 1
        user_message = ChatMessage(
            role="user",
            content=text,
            model=chat.settings.model,
            sequence=next_sequence,
        )
        assistant_message = ChatMessage(
            role="assistant",
            content=response.text,
            model=chat.settings.model,
            temperature=chat.settings.temperature,
            sequence=next_sequence + 1,
        )
        return chat.model_copy(
            update={"messages": [*chat.messages, user_message, assistant_message]},
            deep=True,
        )

    def delete_last_exchange(self, chat: ChatSession) -> ChatSession:
        """Move the trailing user/assistant pair into ``deleted_messages``."""
        if not chat.messages:
            return chat

        cut = len(chat.messages) - 1
        if chat.messages[cut].role == "assistant" and cut > 0 and chat.messages[cut - 1].role == "user":
            cut -= 1

        removed = chat.messages[cut:]
        return chat.model_copy(
            update={
                "messages": chat.messages[:cut],
                "deleted_messages": [*chat.deleted_messages, *removed],
            },
            deep=True,
        )

    def update_settings(self, chat: ChatSession, model: Optional[str] = None, temperature: Optional[float] = None) -> ChatSession:
        settings = chat.settings.model_copy(
            update={
                k: v
                for k, v in (("model", model), ("temperature", temperature))
                if v is not None
            }
        )
        return chat.model_copy(update={"settings": settings}, deep=True)

    # -- history ---------------------------------------------------------

    def save_chat(self, chat: ChatSession) -> bool:
        """Upsert the chat as the current record of its recipe."""
        current = chat.model_copy(update={"lifecycle_state": LifecycleState.CURRENT})
        return self.history_store.upsert(_chat_record(current))

    def reset_chat(self, chat: ChatSession) -> ChatSession:
        """Archive the chat as 'last' and start a fresh current one."""
        fresh = ChatSession(recipe=chat.recipe, settings=chat.settings.model_copy())
        outgoing = chat.model_copy(update={"lifecycle_state": LifecycleState.LAST, "was_reset": True})
        self.history_store.supersede_and_insert(_chat_record(outgoing), _chat_record(fresh))
        logger.info("Chat %s reset for recipe '%s'", chat.id, chat.recipe.title)
        return fresh

    def restore_chat(self, current: ChatSession, record: HistoryRecord) -> ChatSession:
        """
        Bring an archived chat back as the current one.

        ``current`` moves to the 'last' slot; the restored conversation gets a
        new id so it does not collide with the archived record.
        """
        archived = ChatSession.model_validate(record.payload)
        restored = ChatSession(
            recipe=archived.recipe,
            messages=archived.messages,
            deleted_messages=archived.deleted_messages,
            settings=archived.settings,
            was_restored=True,
        )
        outgoing = current.model_copy(update={"lifecycle_state": LifecycleState.LAST})
        self.history_store.supersede_and_insert(_chat_record(outgoing), _chat_record(restored))
        return restored

    def load_chats(self, recipe_id: str) -> dict[LifecycleState, ChatSession]:
        """Stored chats of a recipe keyed by lifecycle state."""
        chats = {}
        for record in self.history_store.query_by_entity(recipe_id):
            if record.kind != RecordKind.CHAT:
                continue
            chat = ChatSession.model_validate(record.payload)
            chats[record.lifecycle_state] = chat.model_copy(update={"lifecycle_state": record.lifecycle_state})
        return chats


def _chat_record(chat: ChatSession) -> HistoryRecord:
    return HistoryRecord(
        id=chat.id,
        kind=RecordKind.CHAT,
        related_id=chat.recipe.id,
        lifecycle_state=chat.lifecycle_state,
        payload=chat.model_dump(mode="json"),
        created_at=utcnow(),
        was_reset=chat.was_reset,
        was_restored=chat.was_restored,
    )
