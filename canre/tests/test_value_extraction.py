import pytest

from canre.exceptions import SignalExtractionError
from canre.models import ByteOrder, Frame, SignalCandidate
from canre.services.time_series_store import ArbitrationGroup
from canre.services.value_extraction import (
    extract_candidate_raw, extract_group_signals, extract_raw, extract_signal,
)


def test_little_endian_extraction():
    assert extract_raw(b'\x34\x12', 0, 16) == 0x1234
    assert extract_raw(b'\xF0\x0F', 4, 8) == 0xFF
    assert extract_raw(b'\x80', 7, 1) == 1


def test_big_endian_uses_msb_start_bit():
    assert extract_raw(b'\x12\x34', 7, 16, ByteOrder.BIG_ENDIAN) == 0x1234
    assert extract_raw(b'\xA5', 3, 4, ByteOrder.BIG_ENDIAN) == 0x5
    # same bytes read as Intel give the swapped value
    assert extract_raw(b'\x12\x34', 0, 16, ByteOrder.LITTLE_ENDIAN) == 0x3412


def test_bits_beyond_payload_read_as_zero():
    assert extract_raw(b'\x01', 0, 16) == 1
    assert extract_raw(b'', 0, 8) == 0
    assert extract_raw(b'\xFF', 7, 16, ByteOrder.BIG_ENDIAN) == 0xFF00


def test_invalid_field_raises():
    with pytest.raises(SignalExtractionError):
        extract_raw(b'\x00', 0, 0)
    with pytest.raises(SignalExtractionError):
        extract_raw(b'\x00', -1, 8)


def _frames(n, arb_id=0x100):
    return [Frame(arbitration_id=arb_id, timestamp=i * 0.01, data=bytes([i % 256, i // 256]))
            for i in range(n)]


def test_extract_signal_is_bounded_and_scaled_exactly():
    candidate = SignalCandidate(name='Counter', arbitration_id=0x100, start_bit=0, length=16,
                                factor=100 / 255, offset=-3.0)
    frames = _frames(150)

    signal = extract_signal(candidate, frames)
    assert len(signal) == 100
    assert signal.raw_values[42] == 42
    for raw, physical in zip(signal.raw_values, signal.physical_values):
        assert physical == raw * candidate.factor + candidate.offset
    assert signal.timestamps[1] == pytest.approx(0.01)

    assert len(extract_signal(candidate, frames, limit=None)) == 150


def test_extract_candidate_raw_uses_declared_byte_order():
    frame = Frame(arbitration_id=0x100, timestamp=0.0, data=b'\x01\x02')
    intel = SignalCandidate(name='A', arbitration_id=0x100, start_bit=0, length=16)
    motorola = SignalCandidate(name='B', arbitration_id=0x100, start_bit=7, length=16,
                               byte_order=ByteOrder.BIG_ENDIAN)
    assert extract_candidate_raw(frame, intel) == 0x0201
    assert extract_candidate_raw(frame, motorola) == 0x0102


def test_extract_group_signals_skips_foreign_candidates():
    group = ArbitrationGroup(0x100)
    for frame in _frames(20):
        group.append(frame)
    own = SignalCandidate(name='Own', arbitration_id=0x100, start_bit=0, length=8)
    foreign = SignalCandidate(name='Other', arbitration_id=0x200, start_bit=0, length=8)
    signals = extract_group_signals(group, [own, foreign])
    assert [s.name for s in signals] == ['Own']
    assert signals[0].physical_values.tolist() == list(range(20))
