"""MLflow trace logging for split-test turns and feedback."""

from typing import Optional

import mlflow
from mlflow.entities import AssessmentSource, AssessmentSourceType

from core.models import SplitTestFeedback, SplitTestMessage


class TraceLogger:
    """
    Logs split-test turns and human preferences to MLflow.

    Each turn (user text -> response A, response B) becomes an MLflow trace.
    Feedback (selected side + reaction + comment) is logged as an assessment
    on that trace.
    """

    def __init__(self, experiment_id: str):
        self.experiment_id = experiment_id
        mlflow.set_experiment(experiment_id=experiment_id)

    def log_turn_trace(
        self,
        session_id: str,
        message: SplitTestMessage,
        system_prompt_a: Optional[str] = None,
        system_prompt_b: Optional[str] = None,
    ) -> str:
        """
        Create an MLflow trace for one split-test turn.

        Returns the trace_id for later feedback attachment.
        """
        with mlflow.start_span(
            name="split_test_turn",
            attributes={
                "session_id": session_id,
                "message_id": message.id,
                "sequence": message.sequence,
                "model": message.model_used,
                "recipe_a": message.response_a.recipe_snapshot.title,
                "recipe_b": message.response_b.recipe_snapshot.title,
            },
        ) as span:
            span.set_inputs(
                {
                    "user_text": message.user_text,
                    "system_prompt_a": system_prompt_a,
                    "system_prompt_b": system_prompt_b,
                }
            )
            span.set_outputs(
                {
                    "response_a": message.response_a.text,
                    "response_b": message.response_b.text,
                }
            )
            trace_id = span.trace_id

        return trace_id

    def log_feedback(self, trace_id: str, feedback: SplitTestFeedback) -> None:
        """Log a human preference as an MLflow assessment on an existing trace."""
        rationale = f"{feedback.reaction.value}: {feedback.comment}" if feedback.comment else feedback.reaction.value

        mlflow.log_feedback(
            trace_id=trace_id,
            name="split_preference",
            value=feedback.selected_option.value,
            rationale=rationale,
            source=AssessmentSource(
                source_type=AssessmentSourceType.HUMAN,
                source_id="splitbench_user",
            ),
        )
