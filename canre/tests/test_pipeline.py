from threading import Event

import pytest

from canre.config import ConfigManager
from canre.models import Frame, SignalType
from canre.services.pipeline import AnalysisPipeline


@pytest.fixture
def config(tmp_path, monkeypatch):
    for name in ('CANRE_POLICY', 'CANRE_WORKERS', 'CANRE_LOG_LEVEL', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('HOME', str(tmp_path))
    return ConfigManager(str(tmp_path / 'missing.json'))


def _scenario(toggle_at_half=False, arb_id=0x100, n=100):
    frames = []
    for i in range(n):
        flag = int(i >= n // 2) if toggle_at_half else i % 2
        data = bytes([flag, 0, i & 0xFF, (i >> 8) & 0xFF, 0, 0, 0, 0])
        frames.append(Frame(arbitration_id=arb_id, timestamp=i * 0.01, data=data))
    return frames


@pytest.mark.parametrize('policy', ['quick', 'full'])
def test_end_to_end_boolean_and_counter(config, policy):
    config.detection.policy = policy
    result = AnalysisPipeline(config).run(_scenario())

    assert not result.cancelled
    assert result.total_frames == 100
    assert list(result.candidates) == [0x100]
    boolean, counter = result.candidates[0x100]
    assert (boolean.start_bit, boolean.length, boolean.signal_type) == (0, 8, SignalType.BOOLEAN)
    assert (counter.start_bit, counter.length, counter.signal_type) == (16, 16, SignalType.INTEGER)
    assert len(result.extracted) == 2
    assert len(result.correlations) == 1
    assert set(result.classifications) == {boolean.key, counter.key}

    # two signals never reach the minimum cluster size
    assert [len(c) for c in result.clusters] == [1, 1]
    assert set(result.cluster_map) == {boolean.key, counter.key}


def test_step_boolean_correlates_with_counter(config):
    result = AnalysisPipeline(config).run(_scenario(toggle_at_half=True))
    assert len(result.significant_correlations) == 1
    correlation = result.significant_correlations[0]
    assert correlation.correlation > 0.8
    assert abs(correlation.lag) <= 10


def test_runs_are_deterministic(config):
    first = AnalysisPipeline(config).run(_scenario(toggle_at_half=True))
    second = AnalysisPipeline(config).run(_scenario(toggle_at_half=True))
    assert [(r.signal_a.key, r.signal_b.key, r.correlation, r.lag) for r in first.correlations] == \
        [(r.signal_a.key, r.signal_b.key, r.correlation, r.lag) for r in second.correlations]
    assert [[m.key for m in c.members] for c in first.clusters] == \
        [[m.key for m in c.members] for c in second.clusters]


def test_rare_ids_get_statistics_but_no_detection(config):
    rare = [Frame(arbitration_id=0x200, timestamp=i * 0.1, data=bytes([i * 20])) for i in range(5)]
    result = AnalysisPipeline(config).run(_scenario() + rare)
    assert list(result.statistics) == [0x100, 0x200]
    assert list(result.candidates) == [0x100]
    assert result.dlc_by_id == {0x100: 8, 0x200: 1}
    assert result.extended_ids == set()


def test_extended_flag_is_collected_per_id(config):
    extended = [Frame(arbitration_id=0x123, timestamp=i * 0.1, data=bytes([i]), is_extended=True)
                for i in range(5)]
    result = AnalysisPipeline(config).run(_scenario() + extended)
    assert result.extended_ids == {0x123}


def test_max_messages_keeps_most_frequent(config):
    config.detection.max_messages = 1
    result = AnalysisPipeline(config).run(_scenario(n=50, arb_id=0x300) + _scenario(arb_id=0x100))
    assert list(result.candidates) == [0x100]


def test_cancelled_run_keeps_completed_stages(config):
    cancel = Event()
    cancel.set()
    result = AnalysisPipeline(config).run(_scenario(), cancel_event=cancel)
    assert result.cancelled
    assert 0x100 in result.statistics
    assert result.candidates == {}
    assert result.clusters == []


def test_j1979_ids_reported(config):
    frames = [Frame(arbitration_id=0x201, timestamp=i * 0.1, data=b'\x00\x10') for i in range(3)]
    result = AnalysisPipeline(config).run(frames)
    assert [p.name for p in result.j1979] == ['EngineRPM']
