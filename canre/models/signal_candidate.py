"""
Signal candidate model: a hypothesized fixed-width bit field inside a message.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, NamedTuple, Optional

import numpy as np


class SignalType(Enum):
    UNKNOWN = 'unknown'
    BOOLEAN = 'boolean'
    ENUM = 'enum'
    INTEGER = 'integer'
    FLOAT = 'float'


class ByteOrder(Enum):
    LITTLE_ENDIAN = 'little_endian'  # Intel
    BIG_ENDIAN = 'big_endian'  # Motorola

    def to_cantools(self) -> str:
        """Return the byte order string expected by cantools."""
        return self.value


class SignalValueType(Enum):
    UNSIGNED = 'unsigned'
    SIGNED = 'signed'


class SignalClassification(Enum):
    UNKNOWN = 'unknown'
    SENSOR = 'sensor'
    ACTUATOR = 'actuator'
    STATUS = 'status'
    DIAGNOSTIC = 'diagnostic'
    CONTROL = 'control'


class SignalKey(NamedTuple):
    """Identity of a candidate, used to key annotation maps."""
    arbitration_id: int
    start_bit: int
    length: int


@dataclass(frozen=True)
class SignalCandidate:
    """A detected signal. Immutable after detection.

    Later stages annotate candidates through maps keyed by ``key`` instead of
    mutating the candidate.

    Attributes:
        name: Signal name (unique within its message)
        arbitration_id: Owning CAN identifier
        start_bit: Start bit, byte-major/bit-minor (LSB for little endian, MSB for big endian)
        length: Bit length
        byte_order: Little (Intel) or big (Motorola) endian
        value_type: Signedness of the raw value
        factor: Linear scale, physical = raw * factor + offset
        offset: Linear offset
        minimum_raw: Smallest raw value observed during detection
        maximum_raw: Largest raw value observed during detection
        unit: Unit label (heuristic)
        signal_type: Coarse type tag
        value_table: Optional raw value -> label mapping
    """
    name: str
    arbitration_id: int
    start_bit: int
    length: int
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    value_type: SignalValueType = SignalValueType.UNSIGNED
    factor: float = 1.0
    offset: float = 0.0
    minimum_raw: float = 0.0
    maximum_raw: float = 0.0
    unit: str = ''
    signal_type: SignalType = SignalType.UNKNOWN
    value_table: Dict[int, str] = field(default_factory=dict, compare=False)

    @property
    def key(self) -> SignalKey:
        return SignalKey(self.arbitration_id, self.start_bit, self.length)

    @property
    def end_bit(self) -> int:
        """Exclusive end of the bit span (byte-major numbering, little endian)."""
        return self.start_bit + self.length

    @property
    def minimum(self) -> float:
        """Smallest observed physical value."""
        return self.physical_value(self.minimum_raw)

    @property
    def maximum(self) -> float:
        """Largest observed physical value."""
        return self.physical_value(self.maximum_raw)

    @property
    def is_signed(self) -> bool:
        return self.value_type is SignalValueType.SIGNED

    def physical_value(self, raw_value: float) -> float:
        return raw_value * self.factor + self.offset

    def overlaps(self, other: 'SignalCandidate') -> bool:
        """True if the two bit spans intersect."""
        return bits_overlap(self.start_bit, self.length, other.start_bit, other.length)

    def __str__(self) -> str:
        return (f"{self.name} ({self.start_bit}:{self.length}) {self.signal_type.value} "
                f"[{self.minimum:.2f}..{self.maximum:.2f}] {self.unit}")


def bits_overlap(start_a: int, length_a: int, start_b: int, length_b: int) -> bool:
    """Return True if [start_a, start_a+length_a) intersects [start_b, start_b+length_b)."""
    return start_a < start_b + length_b and start_b < start_a + length_a


@dataclass(frozen=True, eq=False)
class ExtractedSignal:
    """A candidate together with the value series extracted from its frames.

    Attributes:
        candidate: The detected signal
        raw_values: Raw unsigned values, one per extracted frame
        physical_values: raw * factor + offset
        timestamps: Timestamps of the extracted frames (optional)
    """
    candidate: SignalCandidate
    raw_values: np.ndarray
    physical_values: np.ndarray
    timestamps: Optional[np.ndarray] = None

    @property
    def name(self) -> str:
        return self.candidate.name

    @property
    def key(self) -> SignalKey:
        return self.candidate.key

    @property
    def arbitration_id(self) -> int:
        return self.candidate.arbitration_id

    def __len__(self) -> int:
        return len(self.physical_values)
