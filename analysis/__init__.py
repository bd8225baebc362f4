# Split-test analysis layer
from .feedback_converter import FeedbackConverter
from .requester import AnalysisRequester, StructuredAnalysis, parse_analysis

__all__ = [
    "AnalysisRequester",
    "StructuredAnalysis",
    "parse_analysis",
    "FeedbackConverter",
]
