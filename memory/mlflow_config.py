"""MLflow configuration for Splitbench split-test tracing."""

import hashlib
import os
from pathlib import Path
from typing import Optional

import mlflow

# Default MLflow tracking URI - local file store alongside SQLite DB
DEFAULT_MLFLOW_DIR = Path(__file__).parent.parent / "data" / "mlruns"


def tracing_enabled() -> bool:
    """Tracing is opt-in through MLFLOW_TRACING=1."""
    return os.getenv("MLFLOW_TRACING", "").lower() in ("1", "true", "yes")


def init_mlflow(tracking_uri: Optional[str] = None) -> None:
    """Set the MLflow tracking URI from the argument, env or local default."""
    uri = tracking_uri or os.getenv(
        "MLFLOW_TRACKING_URI",
        DEFAULT_MLFLOW_DIR.as_uri(),
    )
    mlflow.set_tracking_uri(uri)


def get_or_create_experiment(recipe_a_title: str, recipe_b_title: str, pair_key: str) -> str:
    """
    Get or create the MLflow experiment for a recipe pair.

    Returns the experiment_id.
    """
    digest = hashlib.sha1(pair_key.encode("utf-8")).hexdigest()[:8]
    experiment_name = f"splitbench/{recipe_a_title}_vs_{recipe_b_title}_{digest}"
    experiment = mlflow.get_experiment_by_name(experiment_name)
    if experiment:
        return experiment.experiment_id
    return mlflow.create_experiment(experiment_name)
