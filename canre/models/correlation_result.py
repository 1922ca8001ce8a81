"""
Correlation result model.
"""
from dataclasses import dataclass

from canre.models.signal_candidate import SignalCandidate


@dataclass(frozen=True)
class CorrelationResult:
    """Statistical relationship between two signals. Immutable once produced.

    Attributes:
        signal_a: First signal (non-owning reference)
        signal_b: Second signal (non-owning reference)
        correlation: Pearson coefficient in [-1, 1]
        lag: Best lag in samples (positive: A leads B)
        p_value: Approximate two-sided p-value in [0, 1]
        is_significant: |r| and p-value both cleared their thresholds
        relationship: Human-readable label
    """
    signal_a: SignalCandidate
    signal_b: SignalCandidate
    correlation: float
    lag: int
    p_value: float
    is_significant: bool
    relationship: str

    def __str__(self) -> str:
        return f"{self.signal_a.name} <-> {self.signal_b.name}: r={self.correlation:.3f} ({self.relationship})"
