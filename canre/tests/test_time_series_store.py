import numpy as np
import pytest

from canre.models import Frame
from canre.services.time_series_store import ArbitrationGroup, TimeSeriesStore


def _frame(arb_id, t, data):
    return Frame(arbitration_id=arb_id, timestamp=t, data=bytes(data))


def test_store_groups_by_id_in_order():
    store = TimeSeriesStore()
    store.add_frames([
        _frame(0x200, 0.0, [1]),
        _frame(0x100, 0.1, [2]),
        _frame(0x200, 0.2, [3]),
    ])
    assert store.ids() == [0x100, 0x200]
    assert len(store) == 2
    assert store.total_frames == 3
    assert [f.data for f in store[0x200].frames] == [b'\x01', b'\x03']
    assert 0x300 not in store
    assert store.get(0x300) is None
    assert store.time_span() == pytest.approx(0.2)


def test_group_remembers_extended_identifier():
    group = ArbitrationGroup(0x123)
    group.append(_frame(0x123, 0.0, [1]))
    assert not group.is_extended
    group.append(Frame(arbitration_id=0x123, timestamp=0.1, data=b'\x02', is_extended=True))
    assert group.is_extended


def test_byte_matrix_zero_pads_short_payloads():
    group = ArbitrationGroup(0x100)
    group.append(_frame(0x100, 0.0, [1, 2, 3]))
    group.append(_frame(0x100, 0.1, [4]))
    assert group.dlc == 3
    matrix = group.byte_matrix()
    assert matrix.dtype == np.uint8
    assert matrix.tolist() == [[1, 2, 3], [4, 0, 0]]
    assert group.byte_series(2).tolist() == [3, 0]
    # offsets beyond the DLC read as zeros
    assert group.byte_series(7).tolist() == [0, 0]


def test_cached_views_refresh_after_append():
    group = ArbitrationGroup(0x100)
    group.append(_frame(0x100, 0.0, [1]))
    assert group.timestamps().tolist() == [0.0]
    group.append(_frame(0x100, 0.5, [2, 9]))
    assert group.timestamps().tolist() == [0.0, 0.5]
    assert group.byte_matrix().shape == (2, 2)


def test_append_rejects_foreign_frames():
    group = ArbitrationGroup(0x100)
    with pytest.raises(ValueError):
        group.append(_frame(0x101, 0.0, [0]))


def test_sampled_strides_evenly():
    group = ArbitrationGroup(0x100)
    for i in range(250):
        group.append(_frame(0x100, i * 0.01, [i % 256]))
    sampled = group.sampled(100)
    assert len(sampled) == 100
    assert sampled.frames[0] is group.frames[0]
    assert sampled.frames[1] is group.frames[2]
    assert group.sampled(500) is group


def test_most_frequent():
    store = TimeSeriesStore()
    store.add_frames([_frame(0x100, 0.0, [0])] * 3 + [_frame(0x200, 0.0, [0])] * 5)
    assert [g.arbitration_id for g in store.most_frequent(1)] == [0x200]
