from concurrent.futures import ThreadPoolExecutor

from canre_io import metrics


def setup_function():
    metrics.reset_all()


def test_inc_get_and_reset():
    metrics.inc('frames_ingested')
    metrics.inc('frames_ingested', 4)
    assert metrics.get('frames_ingested') == 5
    assert metrics.get('never_touched') == 0
    assert metrics.get_all() == {'frames_ingested': 5}
    metrics.reset_all()
    assert metrics.get_all() == {}


def test_concurrent_increments():
    with ThreadPoolExecutor(max_workers=4) as executor:
        for _ in range(4):
            executor.submit(lambda: [metrics.inc('pairs') for _ in range(1000)])
    assert metrics.get('pairs') == 4000
