"""Uploaded file analysis: extraction, OCR, image analysis and summarization."""

from src.ai.analysis.extractor import DocumentExtractor
from src.ai.analysis.intent import RoutingDecision, route_conversation
from src.ai.analysis.orchestrator import AnalysisOrchestrator, AnalysisState
from src.ai.analysis.summarizer import Summarizer
from src.ai.analysis.vision import VisionAnalyzer

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisState",
    "DocumentExtractor",
    "RoutingDecision",
    "Summarizer",
    "VisionAnalyzer",
    "route_conversation",
]
