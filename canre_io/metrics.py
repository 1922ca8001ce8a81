"""Process-local counters for the analysis stages.

Stages call inc() as they work (frames ingested, candidates detected,
correlation pairs skipped); reports and the CLI read them with get_all().
"""
from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Dict

_c = Counter()
_lock = Lock()


def inc(name: str, n: int = 1) -> None:
    with _lock:
        _c[name] += n


def get(name: str) -> int:
    with _lock:
        return _c[name]


def get_all() -> Dict[str, int]:
    with _lock:
        return dict(_c)


def reset_all() -> None:
    with _lock:
        _c.clear()
