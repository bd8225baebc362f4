"""History timeline: typed events, analytics and filters."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Union

from .models import (
    ChatSession,
    HistoryRecord,
    LifecycleState,
    RecordKind,
    Reaction,
    SplitOption,
    SplitTestSession,
)


@dataclass
class ChatEvent:
    record_id: str
    recipe_id: str
    recipe_title: str
    lifecycle_state: LifecycleState
    created_at: datetime
    message_count: int
    preview: str = ""
    content: str = ""
    was_reset: bool = False
    was_restored: bool = False

    kind = RecordKind.CHAT


@dataclass
class SplitTestEvent:
    record_id: str
    pair_key: str
    recipe_a_title: str
    recipe_b_title: str
    lifecycle_state: LifecycleState
    created_at: datetime
    turn_count: int
    preferences: dict = field(default_factory=dict)
    reactions: dict = field(default_factory=dict)
    closed: bool = False
    was_reset: bool = False
    content: str = ""

    kind = RecordKind.SPLIT_TEST


TimelineEvent = Union[ChatEvent, SplitTestEvent]


@dataclass
class TimelineAnalytics:
    chat_count: int = 0
    average_messages_per_chat: float = 0.0
    split_test_count: int = 0
    preferences: dict = field(default_factory=lambda: {"A": 0, "B": 0})
    reactions: dict = field(default_factory=lambda: {"like": 0, "dislike": 0})


def event_from_record(record: HistoryRecord) -> TimelineEvent:
    """Build the timeline event for a stored record."""
    if record.kind == RecordKind.CHAT:
        chat = ChatSession.model_validate(record.payload)
        last = chat.messages[-1].content if chat.messages else ""
        return ChatEvent(
            record_id=record.id,
            recipe_id=chat.recipe.id,
            recipe_title=chat.recipe.title,
            lifecycle_state=record.lifecycle_state,
            created_at=record.created_at,
            message_count=len(chat.messages),
            preview=last[:120],
            content="\n".join(m.content for m in chat.messages),
            was_reset=record.was_reset,
            was_restored=record.was_restored,
        )
    if record.kind == RecordKind.SPLIT_TEST:
        session = SplitTestSession.model_validate(record.payload)
        preferences = {option.value: 0 for option in SplitOption}
        reactions = {reaction.value: 0 for reaction in Reaction}
        for message in session.messages:
            feedback = message.live_feedback
            if feedback is None:
                continue
            preferences[feedback.selected_option.value] += 1
            reactions[feedback.reaction.value] += 1
        return SplitTestEvent(
            record_id=record.id,
            pair_key=record.related_id,
            recipe_a_title=session.recipe_a.title,
            recipe_b_title=session.recipe_b.title,
            lifecycle_state=record.lifecycle_state,
            created_at=record.created_at,
            turn_count=len(session.messages),
            preferences=preferences,
            reactions=reactions,
            closed=session.is_closed,
            was_reset=record.was_reset,
            content=_split_test_text(session),
        )
    raise TypeError(f"Unknown history record kind: {record.kind!r}")


def _split_test_text(session: SplitTestSession) -> str:
    parts = []
    for message in session.messages:
        parts.extend([message.user_text, message.response_a.text, message.response_b.text])
        feedback = message.live_feedback
        if feedback is not None and feedback.comment:
            parts.append(feedback.comment)
    return "\n".join(parts)


def build_timeline(records: Iterable[HistoryRecord]) -> list[TimelineEvent]:
    """Events for the given records, newest first."""
    events = [event_from_record(r) for r in records]
    return sorted(events, key=lambda e: e.created_at, reverse=True)


def event_title(event: TimelineEvent) -> str:
    if isinstance(event, ChatEvent):
        return f"Chat: {event.recipe_title}"
    if isinstance(event, SplitTestEvent):
        return f"Split test: {event.recipe_a_title} vs {event.recipe_b_title}"
    raise TypeError(f"Unknown timeline event: {event!r}")


def event_search_text(event: TimelineEvent) -> str:
    if isinstance(event, ChatEvent):
        return f"{event.recipe_title}\n{event.content}".lower()
    if isinstance(event, SplitTestEvent):
        return f"{event.recipe_a_title}\n{event.recipe_b_title}\n{event.content}".lower()
    raise TypeError(f"Unknown timeline event: {event!r}")


def filter_events(
    events: list[TimelineEvent],
    search: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    kinds: Optional[set[RecordKind]] = None,
) -> list[TimelineEvent]:
    """Filter events by search term, inclusive date range and kind."""
    term = search.strip().lower() if search else ""
    result = []
    for event in events:
        if kinds and event.kind not in kinds:
            continue
        if start and event.created_at < start:
            continue
        if end and event.created_at > end:
            continue
        if term and term not in event_search_text(event):
            continue
        result.append(event)
    return result


def compute_analytics(events: list[TimelineEvent]) -> TimelineAnalytics:
    analytics = TimelineAnalytics()
    chat_messages = 0
    for event in events:
        if isinstance(event, ChatEvent):
            analytics.chat_count += 1
            chat_messages += event.message_count
        elif isinstance(event, SplitTestEvent):
            analytics.split_test_count += 1
            for option, count in event.preferences.items():
                analytics.preferences[option] = analytics.preferences.get(option, 0) + count
            for reaction, count in event.reactions.items():
                analytics.reactions[reaction] = analytics.reactions.get(reaction, 0) + count
        else:
            raise TypeError(f"Unknown timeline event: {event!r}")

    if analytics.chat_count:
        analytics.average_messages_per_chat = chat_messages / analytics.chat_count
    return analytics
