"""cld_engine package root.

Analysis engine for causal loop diagrams built from SWOT workbooks: feedback
loop detection and classification, leverage point ranking, and synthesis of
strategic options annotated with political-economy metadata. A small CLI and
a Flask JSON API sit on top of the pure analysis functions.
"""

from .graph.builder import CausalGraph, GraphError, GraphView
from .graph.loops import EnumerationLimits
from .orchestrator import AnalysisResult, Analyzer, analyze

__all__ = [
    "AnalysisResult",
    "Analyzer",
    "CausalGraph",
    "EnumerationLimits",
    "GraphError",
    "GraphView",
    "analyze",
]
