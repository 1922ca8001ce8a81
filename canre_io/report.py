"""
JSON reports: per-id statistics export and an analysis summary.
"""
from __future__ import annotations

import json
import logging
import os
from collections import Counter
from typing import Any, Dict, List, Mapping

from canre.models.message_statistics import MessageStatistics
from canre.services.pipeline import AnalysisResult
from canre_io import metrics

logger = logging.getLogger(__name__)


def statistics_record(stat: MessageStatistics) -> Dict[str, Any]:
    return {
        'ID': f"0x{stat.arbitration_id:X}",
        'Count': stat.count,
        'Frequency': round(stat.frequency, 2),
        'MinInterval': round(stat.min_interval, 6),
        'MaxInterval': round(stat.max_interval, 6),
        'AvgInterval': round(stat.avg_interval, 6),
        'Jitter': round(stat.jitter, 6),
        'IsCyclic': stat.is_cyclic,
        'CycleTime': stat.estimated_cycle_time,
    }


def export_statistics_json(statistics: Mapping[int, MessageStatistics], output_path: str) -> str:
    """Write one record per arbitration id (ascending) to ``output_path``.

    Raises:
        OSError: If the file cannot be written
    """
    records = [statistics_record(statistics[i]) for i in sorted(statistics)]
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(records, f, indent=2)
    logger.info(f"Statistics exported to: {output_path}")
    return output_path


def analysis_summary(result: AnalysisResult) -> Dict[str, Any]:
    """JSON-serializable overview of a pipeline run."""
    candidates = result.all_candidates
    classification_counts = Counter(c.value for c in result.classifications.values())

    signals_per_id: List[Dict[str, Any]] = []
    for arbitration_id in sorted(result.candidates):
        signals_per_id.append({
            'id': f"0x{arbitration_id:X}",
            'signals': [
                {
                    'name': c.name,
                    'start_bit': c.start_bit,
                    'length': c.length,
                    'type': c.signal_type.value,
                    'unit': c.unit,
                    'classification': result.classifications[c.key].value
                    if c.key in result.classifications else None,
                }
                for c in result.candidates[arbitration_id]
            ],
        })

    return {
        'total_frames': result.total_frames,
        'message_ids': len(result.statistics),
        'cyclic_ids': sum(1 for s in result.statistics.values() if s.is_cyclic),
        'signals': len(candidates),
        'messages': signals_per_id,
        'classifications': dict(classification_counts),
        'correlations': len(result.correlations),
        'significant_correlations': [
            {
                'signal_a': r.signal_a.name,
                'signal_b': r.signal_b.name,
                'correlation': round(r.correlation, 4),
                'lag': r.lag,
                'relationship': r.relationship,
            }
            for r in result.significant_correlations
        ],
        'causal': [r.relationship for r in result.causal],
        'clusters': [
            {
                'label': c.label,
                'members': [m.name for m in c.members],
                'dominant_type': c.dominant_type.value,
            }
            for c in result.clusters
        ],
        'j1979': [p.name for p in result.j1979],
        'cancelled': result.cancelled,
        'elapsed': round(result.elapsed, 3),
        'metrics': metrics.get_all(),
    }
