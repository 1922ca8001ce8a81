"""
Analysis stages.

Services:
- FrameAggregator: groups frames by arbitration id and computes statistics
- SignalDetector: hypothesizes signal candidates (QUICK_SCAN / FULL_SERIES)
- CorrelationEngine: pairwise correlation, lag and causal view
- SemanticClusteringEngine: single-linkage clustering of related signals
- AnalysisPipeline: runs the stages in order
"""

from canre.services.frame_aggregator import FrameAggregator
from canre.services.signal_detector import SignalDetector, QUICK_SCAN, FULL_SERIES
from canre.services.correlation_engine import CorrelationEngine
from canre.services.clustering_engine import SemanticClusteringEngine
from canre.services.pipeline import AnalysisPipeline, AnalysisResult

__all__ = [
    'FrameAggregator', 'SignalDetector', 'QUICK_SCAN', 'FULL_SERIES',
    'CorrelationEngine', 'SemanticClusteringEngine', 'AnalysisPipeline', 'AnalysisResult',
]
