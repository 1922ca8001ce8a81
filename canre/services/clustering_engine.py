"""
Semantic clustering: single-linkage agglomerative clustering over 1 - |r|.
"""
import logging
from typing import Dict, List, NamedTuple, Sequence

import numpy as np

from canre.constants import CLUSTER_CUT_RATIO, CORRELATION_MIN_SAMPLES, MIN_CLUSTER_SIZE_DEFAULT
from canre.models.cluster import Cluster, DendrogramEntry
from canre.models.signal_candidate import ExtractedSignal, SignalCandidate, SignalKey
from canre.utils.stats_math import pearson_correlation

logger = logging.getLogger(__name__)


def build_correlation_matrix(signals: Sequence[ExtractedSignal],
                             min_samples: int = CORRELATION_MIN_SAMPLES) -> np.ndarray:
    """Symmetric n x n Pearson matrix over truncated physical series.

    The diagonal is 1.0; pairs with fewer than ``min_samples`` aligned values are 0.
    """
    n = len(signals)
    matrix = np.eye(n, dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            length = min(len(signals[i]), len(signals[j]))
            if length < min_samples:
                continue
            r = pearson_correlation(signals[i].physical_values[:length],
                                    signals[j].physical_values[:length])
            matrix[i, j] = matrix[j, i] = r
    return matrix


def single_linkage(distance: np.ndarray) -> List[DendrogramEntry]:
    """Merge clusters until one remains, recording every merge.

    Ties pick the first minimum in row-major order of the upper triangle; the
    merged cluster takes the lower position.
    """
    n = distance.shape[0]
    if n < 2:
        return []

    work = np.array(distance, dtype=np.float64)
    np.fill_diagonal(work, np.inf)
    clusters = [(i,) for i in range(n)]
    entries = []

    while len(clusters) > 1:
        rows, cols = np.triu_indices(len(clusters), k=1)
        upper = work[rows, cols]
        k = int(np.argmin(upper))
        a, b = int(rows[k]), int(cols[k])

        merged = tuple(sorted(clusters[a] + clusters[b]))
        entries.append(DendrogramEntry(step=len(entries), members=merged, distance=float(upper[k])))

        linkage = np.minimum(work[a], work[b])
        work[a, :] = linkage
        work[:, a] = linkage
        work[a, a] = np.inf
        work = np.delete(np.delete(work, b, axis=0), b, axis=1)
        clusters[a] = merged
        del clusters[b]

    return entries


class ClusteringResult(NamedTuple):
    dendrogram: List[DendrogramEntry]
    clusters: List[Cluster]

    def cluster_map(self) -> Dict[SignalKey, int]:
        """Signal key -> cluster id."""
        return {member.key: cluster.cluster_id for cluster in self.clusters for member in cluster.members}


class SemanticClusteringEngine:
    """Groups related signals from their pairwise correlation.

    Attributes:
        min_cluster_size: Smallest merge accepted as a multi-member cluster
        cut_ratio: Threshold as a fraction of the largest merge distance
    """

    def __init__(self, min_cluster_size: int = MIN_CLUSTER_SIZE_DEFAULT,
                 cut_ratio: float = CLUSTER_CUT_RATIO):
        self.min_cluster_size = min_cluster_size
        self.cut_ratio = cut_ratio

    def cluster(self, signals: Sequence[SignalCandidate], correlation: np.ndarray) -> ClusteringResult:
        """Cluster ``signals`` given their n x n correlation matrix.

        Raises:
            ValueError: If the matrix shape does not match the signal count
        """
        n = len(signals)
        correlation = np.asarray(correlation, dtype=np.float64)
        if correlation.shape != (n, n):
            raise ValueError(f"Correlation matrix shape {correlation.shape} does not match {n} signals")

        logger.info(f"Performing semantic analysis on {n} signals...")
        distance = 1.0 - np.abs(correlation)
        np.fill_diagonal(distance, 0.0)
        dendrogram = single_linkage(distance)
        clusters = self.extract_clusters(signals, dendrogram)

        for cluster in clusters:
            if len(cluster) > 1:
                logger.info(f"{cluster.label}: {len(cluster)} signals, "
                            f"dominant type {cluster.dominant_type.value}")
        logger.info(f"Created {len(clusters)} clusters")
        return ClusteringResult(dendrogram, clusters)

    def extract_clusters(self, signals: Sequence[SignalCandidate],
                         dendrogram: Sequence[DendrogramEntry]) -> List[Cluster]:
        """Cut the dendrogram; unclaimed signals become singleton clusters."""
        clusters: List[Cluster] = []
        assigned = set()

        if len(signals) >= 2 and dendrogram:
            threshold = self.cut_ratio * max(e.distance for e in dendrogram)
            for entry in sorted(dendrogram, key=lambda e: e.distance, reverse=True):
                if entry.distance <= threshold or len(entry.members) < self.min_cluster_size:
                    continue
                if assigned.intersection(entry.members):
                    continue
                clusters.append(Cluster(len(clusters), tuple(signals[i] for i in entry.members)))
                assigned.update(entry.members)

        for index, signal in enumerate(signals):
            if index not in assigned:
                clusters.append(Cluster(len(clusters), (signal,)))
        return clusters
