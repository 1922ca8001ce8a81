"""
Data models for the CAN reverse-engineering core.

Models:
- Frame: a captured CAN frame
- MessageStatistics: arrival statistics for one arbitration id
- SignalCandidate: a detected bit field with its inferred encoding
- ExtractedSignal: a candidate with its raw/physical value series
- CorrelationResult: relationship between two signals
- Cluster / DendrogramEntry: semantic clustering output
- J1979Parameter: standard OBD-II parameters
"""

from canre.models.can_frame import Frame
from canre.models.message_statistics import MessageStatistics
from canre.models.signal_candidate import (
    SignalCandidate, ExtractedSignal, SignalKey, SignalType, ByteOrder,
    SignalValueType, SignalClassification, bits_overlap,
)
from canre.models.correlation_result import CorrelationResult
from canre.models.cluster import Cluster, DendrogramEntry
from canre.models.j1979_parameter import J1979Parameter

__all__ = [
    'Frame', 'MessageStatistics', 'SignalCandidate', 'ExtractedSignal', 'SignalKey',
    'SignalType', 'ByteOrder', 'SignalValueType', 'SignalClassification', 'bits_overlap',
    'CorrelationResult', 'Cluster', 'DendrogramEntry', 'J1979Parameter',
]
