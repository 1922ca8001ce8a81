"""
Per-arbitration-id arrival statistics.
"""
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class MessageStatistics:
    """Arrival statistics for one arbitration id, derived from a group snapshot.

    Attributes:
        arbitration_id: CAN identifier
        count: Number of frames
        first_seen: Timestamp of the first frame (seconds)
        last_seen: Timestamp of the last frame (seconds)
        frequency: count / (last_seen - first_seen), 0 for a zero span
        min_interval: Smallest inter-arrival interval (seconds)
        max_interval: Largest inter-arrival interval (seconds)
        avg_interval: Mean inter-arrival interval (seconds)
        jitter: Population standard deviation of the intervals
        is_cyclic: All intervals within +/-20% of the mean (needs >= 3 intervals)
        estimated_cycle_time: round(mean interval * 1000) in milliseconds
        dlc: Largest declared length seen for the id
        data_patterns: Histogram of observed byte values across all payload bytes
        timestamps: Frame timestamps in capture order
    """
    arbitration_id: int
    count: int
    first_seen: float
    last_seen: float
    frequency: float = 0.0
    min_interval: float = 0.0
    max_interval: float = 0.0
    avg_interval: float = 0.0
    jitter: float = 0.0
    is_cyclic: bool = False
    estimated_cycle_time: int = 0
    dlc: int = 0
    data_patterns: Dict[int, int] = field(default_factory=dict)
    timestamps: Tuple[float, ...] = ()

    @property
    def name(self) -> str:
        return f"ID_{self.arbitration_id:X}"

    @property
    def time_span(self) -> float:
        return self.last_seen - self.first_seen
