"""SQLModel entity and value definitions for Splitbench."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


class SplitOption(str, Enum):
    A = "A"
    B = "B"


class Reaction(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class LifecycleState(str, Enum):
    CURRENT = "current"
    LAST = "last"
    RESET = "reset"


class RecordKind(str, Enum):
    CHAT = "chat"
    SPLIT_TEST = "split_test"


# ---------------------------------------------------------------------------
# Repository tables
# ---------------------------------------------------------------------------


class Prompt(SQLModel, table=True):
    """A titled block of instruction text, the building block of a Recipe."""

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(index=True)
    content: str
    example_messages: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Recipe(SQLModel, table=True):
    """An ordered bundle of prompts plus generation parameters."""

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(index=True)
    description: Optional[str] = None
    prompt_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    model: Optional[str] = None
    temperature: float = 0.7
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Frozen recipe copies carried inside sessions
# ---------------------------------------------------------------------------


class PromptSnapshot(SQLModel):
    id: str
    title: str
    content: str


class RecipeSnapshot(SQLModel):
    """A recipe as it was at capture time, with its resolved prompt texts."""

    id: str
    title: str
    description: Optional[str] = None
    prompt_ids: list[str] = Field(default_factory=list)
    prompts: list[PromptSnapshot] = Field(default_factory=list)
    model: Optional[str] = None
    temperature: float = 0.7
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[list[str]] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    captured_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def capture(cls, recipe: "Recipe | RecipeSnapshot", prompts: list[Prompt]) -> "RecipeSnapshot":
        return cls(
            id=recipe.id,
            title=recipe.title,
            description=recipe.description,
            prompt_ids=list(recipe.prompt_ids),
            prompts=[PromptSnapshot(id=p.id, title=p.title, content=p.content) for p in prompts],
            model=recipe.model,
            temperature=recipe.temperature,
            frequency_penalty=recipe.frequency_penalty,
            presence_penalty=recipe.presence_penalty,
            stop_sequences=list(recipe.stop_sequences) if recipe.stop_sequences else None,
            max_tokens=recipe.max_tokens,
            top_p=recipe.top_p,
        )


# ---------------------------------------------------------------------------
# Split test values
# ---------------------------------------------------------------------------


class MemoryEntry(SQLModel):
    """A durable fact extracted from user input."""

    id: str = Field(default_factory=new_id)
    content: str
    importance: int
    reason: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class SessionMemory(SQLModel):
    entries: list[MemoryEntry] = Field(default_factory=list)
    last_analyzed_at: Optional[datetime] = None


class SplitTestFeedback(SQLModel):
    """Human preference for one side of a turn.

    ``deleted=True`` marks the feedback as removed so it can be re-entered;
    a deleted feedback counts as no feedback everywhere.
    """

    selected_option: SplitOption
    reaction: Reaction
    comment: str = ""
    deleted: bool = False
    updated_at: datetime = Field(default_factory=utcnow)


class SplitTestSide(SQLModel):
    recipe_snapshot: RecipeSnapshot
    text: str


class SplitTestMessage(SQLModel):
    """One conversational turn answered by both recipes."""

    id: str = Field(default_factory=new_id)
    sequence: int
    user_text: str
    response_a: SplitTestSide
    response_b: SplitTestSide
    feedback: Optional[SplitTestFeedback] = None
    created_at: datetime = Field(default_factory=utcnow)
    model_used: str
    temperature: float
    trace_id: Optional[str] = None

    @property
    def live_feedback(self) -> Optional[SplitTestFeedback]:
        if self.feedback is None or self.feedback.deleted:
            return None
        return self.feedback

    def response_for(self, option: SplitOption) -> SplitTestSide:
        return self.response_a if option == SplitOption.A else self.response_b


class SplitTestSummary(SQLModel):
    content: dict = Field(default_factory=dict)
    improved_prompt_suggestions: list[dict] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class SplitTestSession(SQLModel):
    """A paired-recipe comparison conversation."""

    id: str = Field(default_factory=new_id)
    recipe_a: RecipeSnapshot
    recipe_b: RecipeSnapshot
    messages: list[SplitTestMessage] = Field(default_factory=list)
    memory: SessionMemory = Field(default_factory=SessionMemory)
    summary: Optional[SplitTestSummary] = None
    created_at: datetime = Field(default_factory=utcnow)
    model_used: str
    temperature: float = 0.7

    @property
    def is_closed(self) -> bool:
        return self.summary is not None

    @property
    def pair_key(self) -> str:
        return pair_key(self.recipe_a.id, self.recipe_b.id)

    def get_message(self, message_id: str) -> Optional[SplitTestMessage]:
        return next((m for m in self.messages if m.id == message_id), None)


def pair_key(recipe_a_id: str, recipe_b_id: str) -> str:
    """History entity id for a split test between two recipes."""
    return f"{recipe_a_id}|{recipe_b_id}"


# ---------------------------------------------------------------------------
# Chat values
# ---------------------------------------------------------------------------


class ChatMessage(SQLModel):
    role: str  # 'user' or 'assistant'
    content: str
    model: str
    temperature: Optional[float] = None
    sequence: int
    created_at: datetime = Field(default_factory=utcnow)


class ChatSettings(SQLModel):
    model: str
    temperature: float = 0.7


class ChatSession(SQLModel):
    """A single-recipe chat conversation."""

    id: str = Field(default_factory=new_id)
    recipe: RecipeSnapshot
    messages: list[ChatMessage] = Field(default_factory=list)
    deleted_messages: list[ChatMessage] = Field(default_factory=list)
    settings: ChatSettings
    created_at: datetime = Field(default_factory=utcnow)
    lifecycle_state: LifecycleState = LifecycleState.CURRENT
    was_reset: bool = False
    was_restored: bool = False


# ---------------------------------------------------------------------------
# History records
# ---------------------------------------------------------------------------


class HistoryRecord(SQLModel):
    """A persisted session occupying one lifecycle slot of its entity."""

    id: str = Field(default_factory=new_id)
    kind: RecordKind
    related_id: str
    lifecycle_state: LifecycleState = LifecycleState.CURRENT
    payload: dict = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    was_reset: bool = False
    was_restored: bool = False


class HistoryRecordRow(SQLModel, table=True):
    """Authoritative record for one (related_id, lifecycle_state) key."""

    __table_args__ = (UniqueConstraint("related_id", "lifecycle_state"),)

    row_id: Optional[int] = Field(default=None, primary_key=True)
    record_id: str = Field(index=True)
    kind: str = Field(index=True)
    related_id: str = Field(index=True)
    lifecycle_state: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime
    was_reset: bool = False
    was_restored: bool = False


class HistoryAuditRow(SQLModel, table=True):
    """Append-only log of every accepted history write."""

    id: Optional[int] = Field(default=None, primary_key=True)
    record_id: str = Field(index=True)
    kind: str
    related_id: str = Field(index=True)
    lifecycle_state: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime
    written_at: datetime = Field(default_factory=utcnow)
