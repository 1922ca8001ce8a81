"""
Clustering models: dendrogram entries and final clusters.
"""
from collections import Counter
from dataclasses import dataclass
from typing import Tuple

from canre.models.signal_candidate import SignalCandidate, SignalType


@dataclass(frozen=True)
class DendrogramEntry:
    """One merge of the agglomerative clustering.

    Attributes:
        step: Merge index (0 = first merge)
        members: Indices of the signals in the merged cluster
        distance: Single-linkage distance at which the merge happened
    """
    step: int
    members: Tuple[int, ...]
    distance: float


@dataclass(frozen=True)
class Cluster:
    """A group of related signals.

    Attributes:
        cluster_id: Sequential cluster id
        members: Member signals (non-owning references)
    """
    cluster_id: int
    members: Tuple[SignalCandidate, ...]

    @property
    def label(self) -> str:
        return f"Cluster_{self.cluster_id}"

    @property
    def dominant_type(self) -> SignalType:
        """Most common coarse type among the members (diagnostic labeling only)."""
        if not self.members:
            return SignalType.UNKNOWN
        return Counter(m.signal_type for m in self.members).most_common(1)[0][0]

    def __len__(self) -> int:
        return len(self.members)
