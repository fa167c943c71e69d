"""Tests for the per-session save lock."""

import pytest

import edits


class _FakeRedis:
    """Just enough of redis.Redis for SET NX / EXISTS / DELETE."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def exists(self, key):
        return int(key in self.data)

    def delete(self, key):
        return int(self.data.pop(key, None) is not None)


def test_second_acquire_fails_while_first_is_held():
    assert edits._acquire_save('sid-1') is True
    assert edits._acquire_save('sid-1') is False
    assert edits._save_in_progress('sid-1') is True
    assert edits._acquire_save('sid-2') is True

    edits._release_save('sid-1')

    assert edits._save_in_progress('sid-1') is False
    assert edits._acquire_save('sid-1') is True


@pytest.fixture
def fake_redis(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(edits, 'get_redis', lambda: fake)
    return fake


def test_redis_lock_is_set_nx_with_expiry(fake_redis):
    assert edits._acquire_save('sid-1') is True
    assert edits._acquire_save('sid-1') is False

    assert fake_redis.expiry['edit:sid-1:saving'] == edits.SAVE_LOCK_SECONDS
    assert edits._save_in_progress('sid-1') is True
    assert edits._saving == set()

    edits._release_save('sid-1')

    assert 'edit:sid-1:saving' not in fake_redis.data
    assert edits._acquire_save('sid-1') is True
