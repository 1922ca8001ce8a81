"""
Value extraction: read a candidate's bit field out of frame payloads.

Bit numbering is byte-major/bit-minor: bit index = byte_index * 8 + bit_in_byte.

- Little endian (Intel): ``start_bit`` is the least significant bit; the value
  is accumulated LSB-first over increasing bit indices.
- Big endian (Motorola): ``start_bit`` is the most significant bit, DBC style;
  the value is accumulated MSB-first, walking down within a byte and jumping
  to bit 7 of the next byte at a byte boundary.

Bits beyond the payload read as zero. This is the same convention cantools
uses, so an exported DBC decodes to exactly these raw values.
"""
import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from canre.constants import EXTRACTION_FRAME_LIMIT
from canre.exceptions import SignalExtractionError
from canre.models.can_frame import Frame
from canre.models.signal_candidate import ByteOrder, ExtractedSignal, SignalCandidate
from canre.services.time_series_store import ArbitrationGroup

logger = logging.getLogger(__name__)


def _motorola_bit_positions(start_bit: int, length: int) -> List[int]:
    """Bit indices from MSB to LSB for a big-endian field."""
    positions = []
    pos = start_bit
    for _ in range(length):
        positions.append(pos)
        if pos % 8 == 0:
            pos += 15
        else:
            pos -= 1
    return positions


def extract_raw(data: bytes, start_bit: int, length: int,
                byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> int:
    """Extract an unsigned integer bit field from a payload.

    Args:
        data: Frame payload
        start_bit: LSB position (little endian) or MSB position (big endian)
        length: Field width in bits
        byte_order: Field byte order

    Returns:
        The unsigned raw value

    Raises:
        SignalExtractionError: If the field description is invalid
    """
    if length <= 0 or start_bit < 0:
        raise SignalExtractionError(f"Invalid bit field {start_bit}|{length}",
                                    start_bit=start_bit, length=length)

    result = 0
    if byte_order is ByteOrder.LITTLE_ENDIAN:
        for i in range(length):
            byte_index, bit_index = divmod(start_bit + i, 8)
            if byte_index < len(data):
                result |= ((data[byte_index] >> bit_index) & 1) << i
    else:
        for pos in _motorola_bit_positions(start_bit, length):
            byte_index, bit_index = divmod(pos, 8)
            bit = (data[byte_index] >> bit_index) & 1 if byte_index < len(data) else 0
            result = (result << 1) | bit
    return result


def extract_candidate_raw(frame: Frame, candidate: SignalCandidate) -> int:
    return extract_raw(frame.data, candidate.start_bit, candidate.length, candidate.byte_order)


def extract_signal(candidate: SignalCandidate, frames: Sequence[Frame],
                   limit: Optional[int] = EXTRACTION_FRAME_LIMIT) -> ExtractedSignal:
    """Build the raw and physical series of a candidate from its frames.

    Args:
        candidate: Detected signal
        frames: Frames of the candidate's arbitration id, in capture order
        limit: Maximum number of frames to extract (None = all)

    Returns:
        ExtractedSignal with one value per extracted frame
    """
    selected = frames if limit is None else frames[:limit]
    raw = np.fromiter((extract_candidate_raw(f, candidate) for f in selected),
                      dtype=np.float64, count=len(selected))
    physical = raw * candidate.factor + candidate.offset
    timestamps = np.fromiter((f.timestamp for f in selected), dtype=np.float64, count=len(selected))
    return ExtractedSignal(candidate=candidate, raw_values=raw, physical_values=physical,
                           timestamps=timestamps)


def extract_group_signals(group: ArbitrationGroup, candidates: Iterable[SignalCandidate],
                          limit: Optional[int] = EXTRACTION_FRAME_LIMIT) -> List[ExtractedSignal]:
    """Extract every candidate of one arbitration group."""
    extracted = []
    for candidate in candidates:
        if candidate.arbitration_id != group.arbitration_id:
            logger.warning(f"Skipping {candidate.name}: belongs to 0x{candidate.arbitration_id:X}, "
                           f"not {group.name}")
            continue
        extracted.append(extract_signal(candidate, group.frames, limit))
    return extracted
