# Memory layer - split-test memory extraction and MLflow tracing
from .extractor import MemoryAnalysis, MemoryExtractor, parse_memory_analysis
from .trace_logger import TraceLogger
from .mlflow_config import init_mlflow, get_or_create_experiment, tracing_enabled

__all__ = [
    "MemoryAnalysis",
    "MemoryExtractor",
    "parse_memory_analysis",
    "TraceLogger",
    "init_mlflow",
    "get_or_create_experiment",
    "tracing_enabled",
]
