"""
Stage-ordered analysis pipeline.

aggregate -> statistics -> detection -> extraction -> classification ->
correlation -> causal view -> correlation matrix -> clustering

Each stage consumes the complete output of the previous one. Per-id work runs
on a ThreadPoolExecutor; workers return private results that the pipeline
merges. Cancellation is cooperative through a threading.Event checked between
arbitration groups and between stages.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from threading import Event
from typing import Dict, Iterable, List, Optional, Set

import numpy as np

from canre.config import ConfigManager
from canre.models.can_frame import Frame
from canre.models.cluster import Cluster, DendrogramEntry
from canre.models.correlation_result import CorrelationResult
from canre.models.j1979_parameter import J1979Parameter
from canre.models.message_statistics import MessageStatistics
from canre.models.signal_candidate import (
    ExtractedSignal, SignalCandidate, SignalClassification, SignalKey,
)
from canre.services.clustering_engine import SemanticClusteringEngine, build_correlation_matrix
from canre.services.correlation_engine import CorrelationEngine
from canre.services.frame_aggregator import FrameAggregator
from canre.services.signal_classifier import classify_signals
from canre.services.signal_detector import SignalDetector, get_policy
from canre.services.value_extraction import extract_group_signals

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything produced by one pipeline run.

    Annotations (classification, cluster id) are keyed by SignalKey; the
    candidates themselves are never modified after detection.
    """
    statistics: Dict[int, MessageStatistics] = field(default_factory=dict)
    candidates: Dict[int, List[SignalCandidate]] = field(default_factory=dict)
    dlc_by_id: Dict[int, int] = field(default_factory=dict)
    extended_ids: Set[int] = field(default_factory=set)
    extracted: List[ExtractedSignal] = field(default_factory=list)
    classifications: Dict[SignalKey, SignalClassification] = field(default_factory=dict)
    correlations: List[CorrelationResult] = field(default_factory=list)
    causal: List[CorrelationResult] = field(default_factory=list)
    correlation_matrix: Optional[np.ndarray] = None
    dendrogram: List[DendrogramEntry] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    cluster_map: Dict[SignalKey, int] = field(default_factory=dict)
    j1979: List[J1979Parameter] = field(default_factory=list)
    total_frames: int = 0
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def all_candidates(self) -> List[SignalCandidate]:
        """Candidates in discovery order (ascending id, then start bit)."""
        return [c for arbitration_id in sorted(self.candidates) for c in self.candidates[arbitration_id]]

    @property
    def significant_correlations(self) -> List[CorrelationResult]:
        return [r for r in self.correlations if r.is_significant]


def _is_set(cancel_event: Optional[Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class AnalysisPipeline:
    """Runs the reverse-engineering stages over a frame sequence.

    Usage:
      pipeline = AnalysisPipeline(ConfigManager())
      result = pipeline.run(frames)
    """

    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config if config is not None else ConfigManager()

        detection = self.config.detection
        self.detector = SignalDetector(get_policy(detection.policy),
                                       optimized=detection.optimized,
                                       sample_limit=detection.sample_limit)

        correlation = self.config.correlation
        self.correlation_engine = CorrelationEngine(
            cross_message_limit=correlation.cross_message_limit,
            significance_correlation=correlation.significance_correlation,
            significance_pvalue=correlation.significance_pvalue,
        )

        clustering = self.config.clustering
        self.clustering_engine = SemanticClusteringEngine(min_cluster_size=clustering.min_cluster_size,
                                                          cut_ratio=clustering.cut_ratio)

    def run(self, frames: Iterable[Frame], cancel_event: Optional[Event] = None) -> AnalysisResult:
        """Run every stage. A cancelled run returns the stages completed so far."""
        started = time.monotonic()
        result = AnalysisResult()

        with ThreadPoolExecutor(max_workers=self.config.app_settings.workers) as executor:
            self._run_stages(frames, result, executor, cancel_event)

        result.cancelled = _is_set(cancel_event)
        result.elapsed = time.monotonic() - started
        if result.cancelled:
            logger.warning(f"Analysis cancelled after {result.elapsed:.2f}s")
        else:
            logger.info(f"Analysis completed in {result.elapsed:.2f}s: "
                        f"{len(result.all_candidates)} signals, {len(result.correlations)} correlations, "
                        f"{len(result.clusters)} clusters")
        return result

    def _run_stages(self, frames: Iterable[Frame], result: AnalysisResult,
                    executor: ThreadPoolExecutor, cancel_event: Optional[Event]) -> None:
        aggregator = FrameAggregator()
        result.total_frames = aggregator.ingest(frames)
        store = aggregator.store
        result.dlc_by_id = {g.arbitration_id: g.dlc for g in store.groups()}
        result.extended_ids = {g.arbitration_id for g in store.groups() if g.is_extended}
        result.statistics = aggregator.statistics(executor)
        result.j1979 = aggregator.j1979_parameters()
        if _is_set(cancel_event):
            return

        detection = self.config.detection
        eligible = [g for g in store.groups() if len(g) > detection.min_message_count]
        if detection.max_messages is not None:
            eligible = sorted(eligible, key=lambda g: len(g), reverse=True)[:detection.max_messages]
        logger.info(f"Detecting signals in {len(eligible)} of {len(store)} arbitration ids "
                    f"({self.detector.policy.name} policy)")
        result.candidates = self.detector.detect_all(store, [g.arbitration_id for g in eligible],
                                                     executor=executor, cancel_event=cancel_event)
        if _is_set(cancel_event):
            return

        limit = self.config.correlation.extraction_limit
        for arbitration_id in sorted(result.candidates):
            result.extracted.extend(extract_group_signals(store[arbitration_id],
                                                          result.candidates[arbitration_id], limit))
        result.classifications = classify_signals(result.extracted)
        if _is_set(cancel_event):
            return

        result.correlations = self.correlation_engine.analyze_correlations(
            result.extracted, executor=executor, cancel_event=cancel_event)
        result.causal = CorrelationEngine.find_causal_relationships(result.correlations)
        if _is_set(cancel_event):
            return

        result.correlation_matrix = build_correlation_matrix(result.extracted)
        clustering = self.clustering_engine.cluster([s.candidate for s in result.extracted],
                                                    result.correlation_matrix)
        result.dendrogram = clustering.dendrogram
        result.clusters = clustering.clusters
        result.cluster_map = clustering.cluster_map()
