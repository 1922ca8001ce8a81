"""
Signal candidate detection over byte-aligned windows of a message's payloads.

Two explicitly named policies share the same scan and acceptance skeleton:

- QUICK_SCAN: variance-based acceptance over the first 8 payload bytes, with
  an optional bounded mode (frame sampling, first 6 multi-byte start bytes)
  for very large captures.
- FULL_SERIES: distinct-count/range based acceptance over every payload byte.

Scan order: monotonic multi-byte windows (2..4 bytes, shortest first, start
offsets ascending, least significant byte must vary), then single bytes, then
the remaining non-monotonic windows. A candidate is kept only if its bit span
does not overlap an earlier accepted one. A byte with exactly two distinct
values is always a boolean candidate; a constant byte never is.
"""
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from threading import Event
from typing import Dict, Iterable, List, Optional

import numpy as np

from canre.constants import (
    QUICK_SCAN_MAX_BYTES, QUICK_SCAN_BYTE_VARIANCE_MIN, QUICK_SCAN_MULTI_VARIANCE_MIN,
    QUICK_SCAN_MIN_FRAMES, FULL_SERIES_BYTE_RANGE_MIN, FULL_SERIES_MULTI_DISTINCT_MIN,
    FULL_SERIES_MULTI_RANGE_MIN, FULL_SERIES_MIN_FRAMES, MULTI_BYTE_MIN_LENGTH,
    MULTI_BYTE_MAX_LENGTH, BOOLEAN_MAX_DISTINCT, ENUM_MAX_DISTINCT,
    OPTIMIZED_SAMPLE_LIMIT, OPTIMIZED_MAX_START_BYTE,
    SCALE_8BIT_RANGE, SCALE_8BIT_FACTOR, SCALE_16BIT_RANGE, SCALE_16BIT_FACTOR,
)
from canre.exceptions import ConfigurationError
from canre.models.signal_candidate import (
    ByteOrder, SignalCandidate, SignalType, SignalValueType, bits_overlap,
)
from canre.services.time_series_store import ArbitrationGroup, TimeSeriesStore
from canre.utils.stats_math import population_variance
from canre_io import metrics

logger = logging.getLogger(__name__)


def classify_by_distinct(distinct_count: int) -> SignalType:
    """Coarse type from the number of distinct values."""
    if distinct_count <= BOOLEAN_MAX_DISTINCT:
        return SignalType.BOOLEAN
    if distinct_count <= ENUM_MAX_DISTINCT:
        return SignalType.ENUM
    return SignalType.INTEGER


def auto_scaling(signal_type: SignalType, minimum_raw: float, maximum_raw: float):
    """Return (factor, offset) for a candidate.

    A coarse display normalization by observed raw range, not a calibration.
    """
    factor = 1.0
    if signal_type in (SignalType.INTEGER, SignalType.FLOAT):
        value_range = maximum_raw - minimum_raw
        if value_range > 0:
            if value_range < SCALE_8BIT_RANGE:
                factor = SCALE_8BIT_FACTOR
            elif value_range < SCALE_16BIT_RANGE:
                factor = SCALE_16BIT_FACTOR
    return factor, 0.0


def _is_monotonic(values: np.ndarray, strict: bool) -> bool:
    if values.size < 2:
        return True
    diffs = np.diff(values.astype(np.int64))
    if strict:
        return bool(np.all(diffs > 0) or np.all(diffs < 0))
    return bool(np.all(diffs >= 0) or np.all(diffs <= 0))


@dataclass(frozen=True)
class DetectionPolicy:
    """Acceptance thresholds and naming for one detection strategy."""
    name: str
    min_frames: int

    def byte_offsets(self, dlc: int) -> range:
        return range(dlc)

    def multi_byte_starts(self, dlc: int, optimized: bool) -> range:
        limit = min(dlc, OPTIMIZED_MAX_START_BYTE) if optimized else dlc
        return range(limit)

    def is_meaningful_byte(self, values: np.ndarray, distinct: int) -> bool:
        raise NotImplementedError

    def is_meaningful_window(self, values: np.ndarray, distinct: int) -> bool:
        raise NotImplementedError

    def byte_unit(self, signal_type: SignalType, value_range: float) -> str:
        raise NotImplementedError

    def window_unit(self, signal_type: SignalType, value_range: float) -> str:
        raise NotImplementedError

    def byte_name(self, arbitration_id: int, byte_index: int) -> str:
        raise NotImplementedError

    def window_name(self, arbitration_id: int, start_byte: int, byte_length: int) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class QuickScanPolicy(DetectionPolicy):
    name: str = 'quick'
    min_frames: int = QUICK_SCAN_MIN_FRAMES
    byte_variance_min: float = QUICK_SCAN_BYTE_VARIANCE_MIN
    window_variance_min: float = QUICK_SCAN_MULTI_VARIANCE_MIN

    def byte_offsets(self, dlc: int) -> range:
        return range(min(dlc, QUICK_SCAN_MAX_BYTES))

    def is_meaningful_byte(self, values, distinct):
        return population_variance(values) > self.byte_variance_min

    def is_meaningful_window(self, values, distinct):
        return (_is_monotonic(values, strict=False)
                and population_variance(values) > self.window_variance_min)

    def byte_unit(self, signal_type, value_range):
        if value_range < 10:
            return 'enum'
        if value_range < 100:
            return '%'
        if value_range < 200:
            return 'temp'
        return 'raw'

    def window_unit(self, signal_type, value_range):
        if value_range < 100:
            return 'enum'
        if value_range < 1000:
            return '%'
        if value_range < 10000:
            return 'RPM'
        if value_range < 65535:
            return 'speed'
        return 'raw'

    def byte_name(self, arbitration_id, byte_index):
        return f"Byte_{byte_index}"

    def window_name(self, arbitration_id, start_byte, byte_length):
        return f"MultiByte_{start_byte}_{byte_length}"


@dataclass(frozen=True)
class FullSeriesPolicy(DetectionPolicy):
    name: str = 'full'
    min_frames: int = FULL_SERIES_MIN_FRAMES
    byte_range_min: int = FULL_SERIES_BYTE_RANGE_MIN
    window_distinct_min: int = FULL_SERIES_MULTI_DISTINCT_MIN
    window_range_min: int = FULL_SERIES_MULTI_RANGE_MIN

    def is_meaningful_byte(self, values, distinct):
        return distinct >= 2 and int(values.max()) - int(values.min()) >= self.byte_range_min

    def is_meaningful_window(self, values, distinct):
        if distinct < self.window_distinct_min:
            return False
        if int(values.max()) - int(values.min()) < self.window_range_min:
            return False
        # high-cardinality fields pass without a strict trend
        if not _is_monotonic(values, strict=True) and distinct < values.size // 2:
            return False
        return True

    def byte_unit(self, signal_type, value_range):
        return self.window_unit(signal_type, value_range)

    def window_unit(self, signal_type, value_range):
        if signal_type is SignalType.BOOLEAN:
            return 'bool'
        if signal_type is SignalType.ENUM:
            return 'enum'
        if value_range < 100:
            return '%'
        if value_range < 1000:
            return 'RPM'
        if value_range < 10000:
            return 'speed'
        return 'raw'

    def byte_name(self, arbitration_id, byte_index):
        return f"ID_{arbitration_id:X}_Byte{byte_index}"

    def window_name(self, arbitration_id, start_byte, byte_length):
        return f"ID_{arbitration_id:X}_Bytes{start_byte}-{start_byte + byte_length - 1}"


QUICK_SCAN = QuickScanPolicy()
FULL_SERIES = FullSeriesPolicy()

POLICIES: Dict[str, DetectionPolicy] = {
    QUICK_SCAN.name: QUICK_SCAN,
    FULL_SERIES.name: FULL_SERIES,
}


def get_policy(name: str) -> DetectionPolicy:
    """Look up a policy by name ('quick' or 'full').

    Raises:
        ConfigurationError: For an unknown policy name
    """
    try:
        return POLICIES[name.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown detection policy: {name!r}", setting_name='detection.policy',
                                 setting_value=name, expected="'quick' or 'full'") from None


def compose_window(matrix: np.ndarray, start_byte: int, byte_length: int) -> np.ndarray:
    """Little-endian unsigned integers built from ``byte_length`` columns starting at ``start_byte``."""
    values = np.zeros(matrix.shape[0], dtype=np.uint64)
    for i in range(byte_length):
        values |= matrix[:, start_byte + i].astype(np.uint64) << np.uint64(8 * i)
    return values


class SignalDetector:
    """Hypothesizes signal boundaries and encodings for one arbitration id at a time.

    Attributes:
        policy: Acceptance policy (QUICK_SCAN or FULL_SERIES)
        optimized: Bounded quick scan (sample frames, first 6 multi-byte start bytes)
        sample_limit: Frames sampled per id when optimized
    """

    def __init__(self, policy: DetectionPolicy = QUICK_SCAN, optimized: bool = False,
                 sample_limit: int = OPTIMIZED_SAMPLE_LIMIT):
        if optimized and policy.name != QUICK_SCAN.name:
            logger.warning(f"Optimized mode applies to the quick scan only; ignoring for '{policy.name}'")
            optimized = False
        self.policy = policy
        self.optimized = optimized
        self.sample_limit = sample_limit

    def detect(self, group: ArbitrationGroup) -> List[SignalCandidate]:
        """Detect candidates in one arbitration group.

        Returns:
            Accepted candidates ordered by start bit (empty when the group has
            too few frames)
        """
        if len(group) < max(2, self.policy.min_frames):
            logger.debug(f"Skipping {group.name} (only {len(group)} frames)")
            return []

        if self.optimized:
            group = group.sampled(self.sample_limit)

        matrix = group.byte_matrix()
        dlc = group.dlc
        accepted: List[SignalCandidate] = []

        self._scan_multi_byte(group.arbitration_id, matrix, dlc, accepted, trending=True)
        for byte_index in self.policy.byte_offsets(dlc):
            self._scan_byte(group.arbitration_id, matrix[:, byte_index], byte_index, accepted)
        self._scan_multi_byte(group.arbitration_id, matrix, dlc, accepted, trending=False)

        accepted.sort(key=lambda c: c.start_bit)
        metrics.inc('candidates_detected', len(accepted))
        logger.debug(f"{group.name}: {len(accepted)} candidates ({self.policy.name} policy)")
        return accepted

    def _scan_byte(self, arbitration_id: int, values: np.ndarray, byte_index: int,
                   accepted: List[SignalCandidate]) -> None:
        start_bit = byte_index * 8
        if any(bits_overlap(start_bit, 8, c.start_bit, c.length) for c in accepted):
            return

        distinct = int(np.unique(values).size)
        if distinct < 2:
            return
        if distinct != BOOLEAN_MAX_DISTINCT and not self.policy.is_meaningful_byte(values, distinct):
            return

        signal_type = classify_by_distinct(distinct)
        minimum_raw = float(values.min())
        maximum_raw = float(values.max())
        factor, offset = auto_scaling(signal_type, minimum_raw, maximum_raw)
        candidate = SignalCandidate(
            name=self.policy.byte_name(arbitration_id, byte_index),
            arbitration_id=arbitration_id,
            start_bit=start_bit,
            length=8,
            byte_order=ByteOrder.LITTLE_ENDIAN,
            value_type=SignalValueType.UNSIGNED,
            factor=factor,
            offset=offset,
            minimum_raw=minimum_raw,
            maximum_raw=maximum_raw,
            unit=self.policy.byte_unit(signal_type, maximum_raw - minimum_raw),
            signal_type=signal_type,
        )
        accepted.append(candidate)
        logger.debug(f"  Detected signal: {candidate.name} ({distinct} unique values, "
                     f"range: {minimum_raw:g}-{maximum_raw:g})")

    def _scan_multi_byte(self, arbitration_id: int, matrix: np.ndarray, dlc: int,
                         accepted: List[SignalCandidate], trending: bool) -> None:
        """Scan 2..4 byte windows.

        With ``trending`` only monotonic windows are considered; otherwise only
        the non-monotonic ones, after single bytes have claimed their spans.
        """
        for byte_length in range(MULTI_BYTE_MIN_LENGTH, MULTI_BYTE_MAX_LENGTH + 1):
            for start_byte in self.policy.multi_byte_starts(dlc, self.optimized):
                if start_byte + byte_length > dlc:
                    break
                start_bit = start_byte * 8
                bit_length = byte_length * 8
                if any(bits_overlap(start_bit, bit_length, c.start_bit, c.length) for c in accepted):
                    continue
                low_byte = matrix[:, start_byte]
                if np.all(low_byte == low_byte[0]):
                    continue

                values = compose_window(matrix, start_byte, byte_length)
                if _is_monotonic(values, strict=False) != trending:
                    continue
                distinct = int(np.unique(values).size)
                if distinct < 2 or not self.policy.is_meaningful_window(values, distinct):
                    continue

                signal_type = classify_by_distinct(distinct)
                minimum_raw = float(values.min())
                maximum_raw = float(values.max())
                factor, offset = auto_scaling(signal_type, minimum_raw, maximum_raw)
                candidate = SignalCandidate(
                    name=self.policy.window_name(arbitration_id, start_byte, byte_length),
                    arbitration_id=arbitration_id,
                    start_bit=start_bit,
                    length=bit_length,
                    byte_order=ByteOrder.LITTLE_ENDIAN,
                    value_type=SignalValueType.UNSIGNED,
                    factor=factor,
                    offset=offset,
                    minimum_raw=minimum_raw,
                    maximum_raw=maximum_raw,
                    unit=self.policy.window_unit(signal_type, maximum_raw - minimum_raw),
                    signal_type=signal_type,
                )
                accepted.append(candidate)
                logger.debug(f"  Detected multi-byte signal: {candidate.name} "
                             f"({byte_length} bytes, {distinct} unique values)")

    def detect_all(self, store: TimeSeriesStore, ids: Optional[Iterable[int]] = None,
                   executor: Optional[Executor] = None,
                   cancel_event: Optional[Event] = None) -> Dict[int, List[SignalCandidate]]:
        """Detect candidates for many arbitration ids.

        Each id is scanned independently (in parallel when an executor is
        given); the coordinator merges the private per-id lists. The cancel
        event is checked before each group starts.

        Returns:
            Map of arbitration id -> candidates, ascending by id, ids with no
            candidates omitted
        """
        target_ids = sorted(ids) if ids is not None else store.ids()

        def _run(arbitration_id: int) -> Optional[List[SignalCandidate]]:
            if cancel_event is not None and cancel_event.is_set():
                return None
            group = store.get(arbitration_id)
            if group is None:
                return []
            try:
                return self.detect(group)
            except Exception as e:
                logger.error(f"Error detecting signals for ID 0x{arbitration_id:X}: {e}", exc_info=True)
                return []

        if executor is None:
            outputs = []
            for arbitration_id in target_ids:
                outputs.append(_run(arbitration_id))
        else:
            outputs = list(executor.map(_run, target_ids))

        results: Dict[int, List[SignalCandidate]] = {}
        for arbitration_id, candidates in zip(target_ids, outputs):
            if candidates:
                results[arbitration_id] = candidates
        return results
