"""Typed failures raised by the Splitbench engine."""

from typing import Optional


class WorkbenchError(Exception):
    """Base class for engine-level failures."""


class InvalidRecipe(WorkbenchError):
    """A recipe resolves to no prompts and has no effective system prompt."""

    def __init__(self, recipe_title: str, message: Optional[str] = None):
        super().__init__(message or f"Recipe '{recipe_title}' has no resolvable prompts")
        self.recipe_title = recipe_title


class ProviderFailure(WorkbenchError):
    """A completion call failed; the turn was not recorded."""

    def __init__(self, message: str, side: Optional[str] = None, user_text: str = ""):
        super().__init__(message)
        self.side = side
        # Handed back so the caller can put it in the input box again
        self.user_text = user_text


class MemoryExtractionFailure(WorkbenchError):
    """Memory analysis could not be obtained or parsed."""


class AnalysisFailure(WorkbenchError):
    """The final analysis call failed or returned unparseable text."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class MessageNotFound(WorkbenchError):
    def __init__(self, message_id: str):
        super().__init__(f"Message {message_id} not found in session")
        self.message_id = message_id


class NotReadyForAnalysis(WorkbenchError):
    """Finalize was requested before any turn received feedback."""


class TurnInProgress(WorkbenchError):
    """A turn for this session is already waiting on the providers."""


class HistoryStoreError(WorkbenchError):
    """A history write could not be committed."""

    def __init__(self, message: str, unsaved=None):
        super().__init__(message)
        # The value that failed to persist, when the caller still needs it
        self.unsaved = unsaved
