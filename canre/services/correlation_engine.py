"""
Correlation engine: pairwise statistical relationships between extracted signals.

Two passes over signals with at least 10 physical values:

1. Intra-message: every pair of non-overlapping signals sharing an arbitration
   id (parallel per id when an executor is supplied).
2. Cross-message: only when more than 20 signals qualify; the first 20 in
   discovery order, pairs from different ids, significant results only.

Results are sorted by descending |r|.
"""
import logging
from collections import OrderedDict
from concurrent.futures import Executor
from dataclasses import replace
from threading import Event
from typing import Dict, List, Optional, Sequence

from canre.constants import (
    CORRELATION_MIN_SAMPLES, CROSS_MESSAGE_SIGNAL_LIMIT, SIGNIFICANCE_CORRELATION,
    SIGNIFICANCE_PVALUE, CAUSAL_MIN_LAG, CAUSAL_MIN_CORRELATION,
    RELATIONSHIP_STRONG, RELATIONSHIP_MODERATE, RELATIONSHIP_WEAK,
)
from canre.models.correlation_result import CorrelationResult
from canre.models.signal_candidate import ExtractedSignal
from canre.utils.stats_math import best_lag, correlation_p_value, pearson_correlation
from canre_io import metrics

logger = logging.getLogger(__name__)

_ARITHMETIC_ERRORS = (ValueError, ZeroDivisionError, OverflowError, FloatingPointError)


def describe_relationship(correlation: float, lag: int) -> str:
    """Coarse label for a coefficient, annotated with lag and tentative direction."""
    magnitude = abs(correlation)
    sign = 'positive' if correlation > 0 else 'negative'
    if magnitude > RELATIONSHIP_STRONG:
        label = f"Strong {sign}"
    elif magnitude > RELATIONSHIP_MODERATE:
        label = f"Moderate {sign}"
    elif magnitude > RELATIONSHIP_WEAK:
        label = f"Weak {sign}"
    else:
        label = "No correlation"

    if lag != 0:
        label += f", lag: {lag} samples"
        if magnitude > SIGNIFICANCE_CORRELATION:
            label += " (A leads B)" if lag > 0 else " (B leads A)"
    return label


class CorrelationEngine:
    """Computes CorrelationResults for a set of extracted signals.

    Attributes:
        min_samples: Minimum physical values for a signal (and a pair) to qualify
        cross_message_limit: Signals considered by the cross-message pass
        significance_correlation: |r| threshold for significance
        significance_pvalue: p-value threshold for significance
    """

    def __init__(self, min_samples: int = CORRELATION_MIN_SAMPLES,
                 cross_message_limit: int = CROSS_MESSAGE_SIGNAL_LIMIT,
                 significance_correlation: float = SIGNIFICANCE_CORRELATION,
                 significance_pvalue: float = SIGNIFICANCE_PVALUE):
        self.min_samples = min_samples
        self.cross_message_limit = cross_message_limit
        self.significance_correlation = significance_correlation
        self.significance_pvalue = significance_pvalue

    def correlate(self, signal_a: ExtractedSignal, signal_b: ExtractedSignal) -> Optional[CorrelationResult]:
        """Correlate two signals over their common prefix.

        Returns None when fewer than ``min_samples`` aligned values exist or
        when the computation hits an arithmetic domain error.
        """
        n = min(len(signal_a), len(signal_b))
        if n < self.min_samples:
            return None

        values_a = signal_a.physical_values[:n]
        values_b = signal_b.physical_values[:n]
        try:
            correlation = pearson_correlation(values_a, values_b)
            lag = best_lag(values_a, values_b)
            p_value = correlation_p_value(correlation, n)
        except _ARITHMETIC_ERRORS as e:
            metrics.inc('correlation_pairs_skipped')
            logger.warning(f"Skipping {signal_a.name} <-> {signal_b.name}: {e}")
            return None

        is_significant = (abs(correlation) > self.significance_correlation
                          and p_value < self.significance_pvalue)
        return CorrelationResult(
            signal_a=signal_a.candidate,
            signal_b=signal_b.candidate,
            correlation=correlation,
            lag=lag,
            p_value=p_value,
            is_significant=is_significant,
            relationship=describe_relationship(correlation, lag),
        )

    def _intra_message(self, signals: Sequence[ExtractedSignal]) -> List[CorrelationResult]:
        results = []
        for i in range(len(signals)):
            for j in range(i + 1, len(signals)):
                if signals[i].candidate.overlaps(signals[j].candidate):
                    continue
                result = self.correlate(signals[i], signals[j])
                if result is not None:
                    results.append(result)
        return results

    def _cross_message(self, signals: Sequence[ExtractedSignal]) -> List[CorrelationResult]:
        limited = signals[:self.cross_message_limit]
        results = []
        for i in range(len(limited)):
            for j in range(i + 1, len(limited)):
                if limited[i].arbitration_id == limited[j].arbitration_id:
                    continue
                result = self.correlate(limited[i], limited[j])
                if result is not None and result.is_significant:
                    results.append(result)
        return results

    def analyze_correlations(self, signals: Sequence[ExtractedSignal],
                             executor: Optional[Executor] = None,
                             cancel_event: Optional[Event] = None) -> List[CorrelationResult]:
        """Run both passes and return results sorted by descending |r|.

        Args:
            signals: Extracted signals in discovery order
            executor: Optional executor for the per-id intra-message pass
            cancel_event: Checked before each id and before the cross pass
        """
        qualifying = [s for s in signals if len(s) >= self.min_samples]
        logger.info(f"Analyzing correlations for {len(qualifying)} signals...")

        by_id: Dict[int, List[ExtractedSignal]] = OrderedDict()
        for signal in qualifying:
            by_id.setdefault(signal.arbitration_id, []).append(signal)

        def _run(group: List[ExtractedSignal]) -> List[CorrelationResult]:
            if cancel_event is not None and cancel_event.is_set():
                return []
            return self._intra_message(group)

        groups = list(by_id.values())
        if executor is None:
            partials = [_run(g) for g in groups]
        else:
            partials = list(executor.map(_run, groups))

        results: List[CorrelationResult] = []
        for partial in partials:
            results.extend(partial)

        if len(qualifying) > self.cross_message_limit:
            if cancel_event is None or not cancel_event.is_set():
                results.extend(self._cross_message(qualifying))

        results.sort(key=lambda r: abs(r.correlation), reverse=True)
        significant = sum(1 for r in results if r.is_significant)
        logger.info(f"Found {len(results)} correlations ({significant} significant)")
        return results

    @staticmethod
    def find_causal_relationships(correlations: Sequence[CorrelationResult]) -> List[CorrelationResult]:
        """Significant results with |lag| > 1 and |r| > 0.8, relabelled with the leading signal."""
        causal = []
        for result in correlations:
            if not result.is_significant:
                continue
            if abs(result.lag) <= CAUSAL_MIN_LAG or abs(result.correlation) <= CAUSAL_MIN_CORRELATION:
                continue
            if result.lag > 0:
                leader, follower = result.signal_a.name, result.signal_b.name
            else:
                leader, follower = result.signal_b.name, result.signal_a.name
            causal.append(replace(
                result, relationship=f"Causal: {leader} leads {follower} (lag: {abs(result.lag)})"))
        return causal
