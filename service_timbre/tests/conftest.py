"""
Shared fixtures and in-memory fakes for Timbre Service tests.
"""

import copy
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_timbre.app.cache.redis_cache import RedisCache
from service_timbre.app.messages import MessageProvider
from service_timbre.app.models import TimbreRecord, VoiceCloneRecord, TrainStatus
from service_timbre.app.service import TimbreLookupCache


class FakeRedis:
    """Dict-backed stand-in for the redis.asyncio client."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.calls: List[tuple] = []

    async def get(self, key):
        self.calls.append(("get", key))
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.calls.append(("set", key))
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self.calls.append(("delete",) + keys)
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ping(self):
        return True


class FakePersistence:
    """Transaction boundary that restores the fake tables on error."""

    def __init__(self, timbres: "FakeTimbreRepository"):
        self.timbres = timbres
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def transaction(self):
        snapshot = copy.deepcopy(self.timbres.rows)
        try:
            yield "conn"
        except Exception:
            self.timbres.rows = snapshot
            self.rollbacks += 1
            raise
        self.commits += 1


class FakeTimbreRepository:
    """In-memory ai_tts_voice table."""

    def __init__(self):
        self.rows: Dict[str, TimbreRecord] = {}
        self.reads = 0
        self.fail_on_insert = False

    def add(self, record: TimbreRecord) -> TimbreRecord:
        self.rows[record.id] = record
        return record

    def _matching(self, tts_model_id, name=None, tts_voice=None):
        rows = [
            r for r in self.rows.values()
            if r.tts_model_id == tts_model_id
            and (tts_voice is None or r.tts_voice == tts_voice)
            and (not name or name in r.name)
        ]
        return sorted(rows, key=lambda r: (r.sort, r.id))

    async def page(self, page, limit, tts_model_id, name=None):
        rows = self._matching(tts_model_id, name)
        start = (page - 1) * limit
        return rows[start:start + limit], len(rows)

    async def select_by_id(self, timbre_id, conn=None):
        self.reads += 1
        return copy.deepcopy(self.rows.get(timbre_id))

    async def select_list(self, tts_model_id, name=None, tts_voice=None, conn=None):
        self.reads += 1
        return self._matching(tts_model_id, name, tts_voice)

    async def insert(self, record, conn=None):
        self.rows[record.id] = record
        if self.fail_on_insert:
            raise RuntimeError("duplicate key value violates unique constraint")

    async def update_by_id(self, record, conn=None):
        existing = self.rows.get(record.id)
        if existing is None:
            return 0
        for field_name, value in vars(record).items():
            if value is not None:
                setattr(existing, field_name, value)
        return 1

    async def delete_batch_ids(self, ids, conn=None):
        removed = 0
        for timbre_id in ids:
            if self.rows.pop(timbre_id, None) is not None:
                removed += 1
        return removed


class FakeVoiceCloneRepository:
    """In-memory ai_voice_clone table."""

    def __init__(self):
        self.rows: Dict[str, VoiceCloneRecord] = {}

    def add(self, record: VoiceCloneRecord) -> VoiceCloneRecord:
        self.rows[record.id] = record
        return record

    async def select_by_id(self, clone_id, conn=None):
        return self.rows.get(clone_id)

    async def get_train_success(self, model_id, user_id, conn=None):
        return [
            r for r in self.rows.values()
            if r.model_id == model_id and r.user_id == user_id and r.train_status == TrainStatus.SUCCESS
        ]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    redis_cache = RedisCache("redis://localhost:6379/0")
    redis_cache.redis = fake_redis
    return redis_cache


@pytest.fixture
def timbre_repo():
    return FakeTimbreRepository()


@pytest.fixture
def clone_repo():
    return FakeVoiceCloneRepository()


@pytest.fixture
def persistence(timbre_repo):
    return FakePersistence(timbre_repo)


@pytest.fixture
def lookup(persistence, cache, timbre_repo, clone_repo):
    """TimbreLookupCache wired to the in-memory fakes."""
    return TimbreLookupCache(
        persistence,
        cache,
        timbres=timbre_repo,
        clones=clone_repo,
        messages=MessageProvider("en-US"),
    )


@pytest.fixture
def sample_timbre():
    return TimbreRecord(
        id="a1b2c3",
        tts_model_id="TTS_EdgeTTS",
        name="Xiaoxiao",
        tts_voice="zh-CN-XiaoxiaoNeural",
        languages="zh",
        sort=1,
    )
