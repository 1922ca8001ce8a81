from concurrent.futures import ThreadPoolExecutor

import pytest

from canre.models import Frame
from canre.services.frame_aggregator import FrameAggregator
from canre_io import metrics


def _frames(arb_id, timestamps, data=b'\x00'):
    return [Frame(arbitration_id=arb_id, timestamp=t, data=data) for t in timestamps]


def setup_function():
    metrics.reset_all()


def test_single_frame_has_zero_frequency_and_jitter():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [1.0]))
    stats = agg.statistics()[0x100]
    assert stats.count == 1
    assert stats.frequency == 0.0
    assert stats.jitter == 0.0
    assert stats.is_cyclic is False
    assert stats.estimated_cycle_time == 0


def test_periodic_message_statistics():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [0.0, 0.1, 0.2, 0.3]))
    stats = agg.statistics()[0x100]
    assert stats.count == 4
    assert stats.frequency == pytest.approx(4 / 0.3)
    assert stats.avg_interval == pytest.approx(0.1)
    assert stats.min_interval == pytest.approx(0.1)
    assert stats.max_interval == pytest.approx(0.1)
    assert stats.jitter == pytest.approx(0.0, abs=1e-9)
    assert stats.is_cyclic is True
    assert stats.estimated_cycle_time == 100
    assert stats.time_span == pytest.approx(0.3)


def test_irregular_message_is_not_cyclic():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [0.0, 0.1, 0.2, 0.7]))
    stats = agg.statistics()[0x100]
    assert stats.is_cyclic is False
    assert stats.jitter > 0


def test_cyclic_needs_three_intervals():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [0.0, 0.1, 0.2]))
    assert agg.statistics()[0x100].is_cyclic is False


def test_zero_time_span_gives_zero_frequency():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [2.0, 2.0]))
    assert agg.statistics()[0x100].frequency == 0.0


def test_statistics_keyed_by_ascending_id_and_parallel_matches_serial():
    agg = FrameAggregator()
    agg.ingest(_frames(0x300, [0.0, 0.5]) + _frames(0x100, [0.0, 0.2, 0.4]) + _frames(0x200, [0.1]))
    serial = agg.statistics()
    assert list(serial) == [0x100, 0x200, 0x300]
    with ThreadPoolExecutor(max_workers=2) as executor:
        parallel = agg.statistics(executor)
    assert list(parallel) == list(serial)
    for arb_id in serial:
        assert parallel[arb_id].frequency == serial[arb_id].frequency


def test_data_patterns_count_byte_values():
    agg = FrameAggregator()
    agg.ingest(_frames(0x100, [0.0, 0.1], data=b'\x01\x01\x02'))
    assert agg.statistics()[0x100].data_patterns == {1: 4, 2: 2}


def test_ingest_counts_frames():
    agg = FrameAggregator()
    assert agg.ingest(_frames(0x100, [0.0, 0.1, 0.2])) == 3
    assert metrics.get('frames_ingested') == 3


def test_j1979_parameters_found():
    agg = FrameAggregator()
    agg.ingest(_frames(0x201, [0.0]) + _frames(0x7E8, [0.0]) + _frames(0x100, [0.0]))
    assert [p.name for p in agg.j1979_parameters()] == ['EngineRPM']
