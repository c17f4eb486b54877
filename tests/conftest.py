import pytest

from core import readiness, sorting, synchronizer
from core.storage import CacheStore


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path / "cache.sqlite3")).load()


@pytest.fixture
def fast_timings(monkeypatch):
    monkeypatch.setattr(readiness, "AUTO_SORT_DELAY", 0.01)
    monkeypatch.setattr(readiness, "AUTO_SORT_RESET", 0.1)
    monkeypatch.setattr(sorting, "SORT_FEEDBACK", 0.05)
    monkeypatch.setattr(synchronizer, "STATUS_UPDATE_SHORT", 0.005)
    monkeypatch.setattr(synchronizer, "STATUS_UPDATE_LONG", 0.01)
