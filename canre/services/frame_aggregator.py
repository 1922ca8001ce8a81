"""
Frame aggregation: group frames by arbitration id and compute arrival statistics.
"""
import logging
from collections import Counter
from concurrent.futures import Executor
from typing import Dict, Iterable, List, Optional

import numpy as np

from canre.constants import CYCLIC_TOLERANCE, CYCLIC_MIN_INTERVALS
from canre.models.can_frame import Frame
from canre.models.j1979_parameter import J1979Parameter
from canre.models.message_statistics import MessageStatistics
from canre.services.time_series_store import ArbitrationGroup, TimeSeriesStore
from canre_io import metrics

logger = logging.getLogger(__name__)


def compute_statistics(group: ArbitrationGroup) -> MessageStatistics:
    """Compute arrival statistics from a group snapshot.

    Frames are taken in ingestion order; timestamps are assumed sorted.

    Args:
        group: Arbitration group with at least one frame

    Returns:
        MessageStatistics for the group
    """
    timestamps = group.timestamps()
    count = int(timestamps.size)
    first_seen = float(timestamps[0])
    last_seen = float(timestamps[-1])
    span = last_seen - first_seen
    frequency = count / span if span > 0 else 0.0

    intervals = np.diff(timestamps)
    if intervals.size:
        mean_interval = float(intervals.sum() / intervals.size)
        min_interval = float(intervals.min())
        max_interval = float(intervals.max())
        cycle_time = int(round(mean_interval * 1000))
    else:
        mean_interval = min_interval = max_interval = 0.0
        cycle_time = 0

    if intervals.size >= 2:
        jitter = float(np.sqrt(((intervals - mean_interval) ** 2).sum() / intervals.size))
    else:
        jitter = 0.0

    is_cyclic = False
    if intervals.size >= CYCLIC_MIN_INTERVALS:
        tolerance = mean_interval * CYCLIC_TOLERANCE
        is_cyclic = bool(np.all(np.abs(intervals - mean_interval) <= tolerance))

    patterns = Counter()
    for frame in group.frames:
        patterns.update(frame.data)

    return MessageStatistics(
        arbitration_id=group.arbitration_id,
        count=count,
        first_seen=first_seen,
        last_seen=last_seen,
        frequency=frequency,
        min_interval=min_interval,
        max_interval=max_interval,
        avg_interval=mean_interval,
        jitter=jitter,
        is_cyclic=is_cyclic,
        estimated_cycle_time=cycle_time,
        dlc=group.dlc,
        data_patterns=dict(patterns),
        timestamps=tuple(float(t) for t in timestamps),
    )


class FrameAggregator:
    """First pipeline stage: owns the TimeSeriesStore built from a capture.

    Usage:
      aggregator = FrameAggregator()
      aggregator.ingest(frames)
      stats = aggregator.statistics()
    """

    def __init__(self, store: Optional[TimeSeriesStore] = None):
        self.store = store if store is not None else TimeSeriesStore()

    def ingest(self, frames: Iterable[Frame]) -> int:
        """Group frames by arbitration id, preserving order. Returns frames added."""
        added = self.store.add_frames(frames)
        metrics.inc('frames_ingested', added)
        logger.info(f"Ingested {added} frames into {len(self.store)} arbitration ids")
        return added

    def statistics(self, executor: Optional[Executor] = None) -> Dict[int, MessageStatistics]:
        """Compute statistics for every group, keyed by ascending arbitration id.

        Args:
            executor: Optional executor to compute groups in parallel
        """
        groups = self.store.groups()
        if executor is None:
            results = [compute_statistics(g) for g in groups]
        else:
            results = list(executor.map(compute_statistics, groups))
        return {s.arbitration_id: s for s in results}

    def j1979_parameters(self) -> List[J1979Parameter]:
        """Known OBD-II parameters present in the capture."""
        found = []
        for group in self.store.groups():
            if group.is_j1979:
                param = group.j1979_parameter
                if param is not None:
                    logger.debug(f"Found J1979: {group.arbitration_id:X} = {param.name} ({param.description})")
                    found.append(param)
        return found
