from concurrent.futures import ThreadPoolExecutor
from threading import Event

import numpy as np
import pytest

from canre.models import CorrelationResult, ExtractedSignal, SignalCandidate
from canre.services.correlation_engine import CorrelationEngine, describe_relationship
from canre_io import metrics


def _signal(name, arb_id, start_bit, values, length=8):
    candidate = SignalCandidate(name=name, arbitration_id=arb_id, start_bit=start_bit, length=length)
    arr = np.asarray(values, dtype=float)
    return ExtractedSignal(candidate=candidate, raw_values=arr, physical_values=arr)


def _noise(seed, n=60):
    return np.random.RandomState(seed).normal(size=n)


def test_correlation_is_symmetric_and_self_is_one():
    engine = CorrelationEngine()
    x = _noise(1)
    y = x + 0.5 * _noise(2)
    a = _signal('A', 0x100, 0, x)
    b = _signal('B', 0x100, 8, y)
    assert engine.correlate(a, b).correlation == pytest.approx(engine.correlate(b, a).correlation)
    assert engine.correlate(a, a).correlation == pytest.approx(1.0)


def test_short_series_contribute_nothing():
    engine = CorrelationEngine()
    a = _signal('A', 0x100, 0, range(9))
    b = _signal('B', 0x100, 8, range(9))
    assert engine.correlate(a, b) is None
    assert engine.analyze_correlations([a, b]) == []


def test_series_are_truncated_to_common_length():
    engine = CorrelationEngine()
    a = _signal('A', 0x100, 0, range(50))
    b = _signal('B', 0x100, 8, [2 * v for v in range(12)])
    result = engine.correlate(a, b)
    assert result.correlation == pytest.approx(1.0)
    assert result.is_significant


def test_intra_message_pass_skips_overlapping_pairs_and_sorts():
    x = _noise(3)
    s1 = _signal('S1', 0x100, 0, x)
    s2 = _signal('S2', 0x100, 8, 2 * x + 1)
    s3 = _signal('S3', 0x100, 4, _noise(4))
    s4 = _signal('S4', 0x100, 16, _noise(5))
    results = CorrelationEngine().analyze_correlations([s1, s2, s3, s4])

    pairs = {(r.signal_a.name, r.signal_b.name) for r in results}
    assert pairs == {('S1', 'S2'), ('S1', 'S4'), ('S2', 'S4'), ('S3', 'S4')}
    assert (results[0].signal_a.name, results[0].signal_b.name) == ('S1', 'S2')
    assert results[0].is_significant
    assert results[0].relationship.startswith('Strong positive')
    magnitudes = [abs(r.correlation) for r in results]
    assert magnitudes == sorted(magnitudes, reverse=True)
    for r in results:
        assert -1.0 <= r.correlation <= 1.0
        assert 0.0 <= r.p_value <= 1.0


def test_cross_message_pass_runs_only_above_limit():
    def signals(count):
        return [_signal(f"S{k}", 0x100 + k, 0, [k * i + k for i in range(30)]) for k in range(1, count + 1)]

    engine = CorrelationEngine()
    assert engine.analyze_correlations(signals(20)) == []

    results = engine.analyze_correlations(signals(21))
    # first 20 signals only, every pair from different ids
    assert len(results) == 190
    assert all(r.is_significant for r in results)
    assert all(r.signal_a.arbitration_id != r.signal_b.arbitration_id for r in results)
    assert 'S21' not in {r.signal_a.name for r in results} | {r.signal_b.name for r in results}


def test_parallel_pass_matches_serial():
    sigs = []
    for arb_id in (0x100, 0x200, 0x300):
        for k in range(3):
            sigs.append(_signal(f"{arb_id:X}_{k}", arb_id, 8 * k, _noise(arb_id + k)))
    engine = CorrelationEngine()
    serial = engine.analyze_correlations(sigs)
    with ThreadPoolExecutor(max_workers=3) as executor:
        parallel = engine.analyze_correlations(sigs, executor=executor)
    assert [(r.signal_a.name, r.signal_b.name, r.correlation) for r in parallel] == \
        [(r.signal_a.name, r.signal_b.name, r.correlation) for r in serial]


def test_cancelled_analysis_is_empty():
    x = _noise(6)
    cancel = Event()
    cancel.set()
    results = CorrelationEngine().analyze_correlations(
        [_signal('A', 0x100, 0, x), _signal('B', 0x100, 8, x)], cancel_event=cancel)
    assert results == []


def test_arithmetic_failure_skips_only_that_pair(monkeypatch):
    def _explode(correlation, n):
        raise OverflowError('math range error')

    metrics.reset_all()
    monkeypatch.setattr('canre.services.correlation_engine.correlation_p_value', _explode)
    x = _noise(7)
    a = _signal('A', 0x100, 0, x)
    b = _signal('B', 0x100, 8, x)
    assert CorrelationEngine().analyze_correlations([a, b]) == []
    assert metrics.get('correlation_pairs_skipped') == 1


def test_describe_relationship():
    assert describe_relationship(0.9, 0) == 'Strong positive'
    assert describe_relationship(-0.6, 0) == 'Moderate negative'
    assert describe_relationship(0.35, 0) == 'Weak positive'
    assert describe_relationship(0.1, 2) == 'No correlation, lag: 2 samples'
    assert describe_relationship(0.9, -3) == 'Strong positive, lag: -3 samples (B leads A)'
    assert describe_relationship(-0.75, 4) == 'Moderate negative, lag: 4 samples (A leads B)'


def _result(r, lag, significant=True):
    a = SignalCandidate(name='Pedal', arbitration_id=0x100, start_bit=0, length=8)
    b = SignalCandidate(name='Throttle', arbitration_id=0x200, start_bit=0, length=8)
    return CorrelationResult(a, b, r, lag, 0.001, significant, describe_relationship(r, lag))


def test_causal_view_filters_and_relabels():
    results = [
        _result(0.9, 3),
        _result(-0.95, -2),
        _result(0.9, 1),
        _result(0.75, 5),
        _result(0.9, 4, significant=False),
    ]
    causal = CorrelationEngine.find_causal_relationships(results)
    assert [c.relationship for c in causal] == [
        'Causal: Pedal leads Throttle (lag: 3)',
        'Causal: Throttle leads Pedal (lag: 2)',
    ]
    # originals are untouched
    assert results[0].relationship.startswith('Strong positive')
