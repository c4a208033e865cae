"""
Timbre lookups with cache-aside caching.

Reads check Redis first and fall back to PostgreSQL, caching what they
load; writes go to PostgreSQL and then invalidate the affected cache keys.
Negative lookups are never cached.
"""

import uuid
from typing import List, Optional, Sequence

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .cache.redis_cache import RedisCache, NOT_EXPIRE
from .messages import MessageProvider
from .models import TimbreData, TimbreDetails, TimbrePage, VoiceName, record_from_data
from .persistence.postgres import PostgreSQLPersistence, TimbreRepository, VoiceCloneRepository
from .validation import AcceptAllModelValidator, TtsModelValidator, ensure_tts_model


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class TimbreLookupCache:
    """Timbre data access fronted by a Redis cache."""

    def __init__(
        self,
        persistence: PostgreSQLPersistence,
        cache: RedisCache,
        *,
        timbres: Optional[TimbreRepository] = None,
        clones: Optional[VoiceCloneRepository] = None,
        validator: Optional[TtsModelValidator] = None,
        messages: Optional[MessageProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        invalidate_on_delete: bool = False,
    ):
        self.persistence = persistence
        self.cache = cache
        self.timbres = timbres or TimbreRepository(persistence)
        self.clones = clones or VoiceCloneRepository(persistence)
        self.validator = validator or AcceptAllModelValidator()
        self.messages = messages or MessageProvider()
        self.metrics = metrics
        self.invalidate_on_delete = invalidate_on_delete
        self.logger = get_logger("timbre.service")

    def _record_lookup(self, cache: str, hit: bool):
        if self.metrics:
            self.metrics.record_cache_lookup(cache, hit)

    def _record_write(self, operation: str):
        if self.metrics:
            self.metrics.increment_counter("timbre_writes_total", operation=operation)

    async def list(self, page: int, limit: int, tts_model_id: str, name: Optional[str] = None) -> TimbrePage:
        """Page through the timbres of one TTS model. Results are not cached."""
        records, total = await self.timbres.page(
            page, limit, tts_model_id, name if not _is_blank(name) else None
        )
        return TimbrePage(
            items=[TimbreDetails.from_record(record) for record in records],
            total=total,
            page=page,
            limit=limit
        )

    async def get_details(self, timbre_id: Optional[str]) -> Optional[TimbreDetails]:
        if _is_blank(timbre_id):
            return None

        key = self.cache.details_key(timbre_id)
        cached = await self.cache.get(key)
        if cached is not None:
            self._record_lookup("details", True)
            self.logger.debug("Cache hit for timbre details", timbre_id=timbre_id)
            return TimbreDetails.model_validate(cached)
        self._record_lookup("details", False)

        record = await self.timbres.select_by_id(timbre_id)
        if record is None:
            return None

        details = TimbreDetails.from_record(record)
        await self.cache.set(key, details.model_dump(mode="json"))
        return details

    async def create(self, data: TimbreData, user_id: Optional[int] = None) -> str:
        """Insert a new timbre and return its id."""
        await ensure_tts_model(self.validator, data.tts_model_id)

        timbre_id = uuid.uuid4().hex
        record = record_from_data(timbre_id, data)
        record.creator = user_id
        record.updater = user_id

        async with self.persistence.transaction() as conn:
            await self.timbres.insert(record, conn=conn)

        self._record_write("create")
        self.logger.info("Timbre created", timbre_id=timbre_id, tts_model_id=data.tts_model_id)
        return timbre_id

    async def update(self, timbre_id: str, data: TimbreData, user_id: Optional[int] = None):
        """Update a timbre and drop its cached details.

        The cache key is deleted before the transaction commits, so a cache
        failure rolls the store update back with it. It is deleted again
        after commit, since a read between the two can cache the old row.
        """
        await ensure_tts_model(self.validator, data.tts_model_id)

        record = record_from_data(timbre_id, data)
        record.updater = user_id

        details_key = self.cache.details_key(timbre_id)
        async with self.persistence.transaction() as conn:
            await self.timbres.update_by_id(record, conn=conn)
            await self.cache.delete(details_key)
        await self.cache.delete(details_key)

        self._record_write("update")
        self.logger.info("Timbre updated", timbre_id=timbre_id)

    async def delete(self, ids: Sequence[str]):
        """Batch delete timbres.

        Cached details of deleted ids stay readable until they expire unless
        ``invalidate_on_delete`` is set.
        """
        ids = list(ids)
        async with self.persistence.transaction() as conn:
            await self.timbres.delete_batch_ids(ids, conn=conn)

        if self.invalidate_on_delete and ids:
            keys = [self.cache.details_key(i) for i in ids] + [self.cache.name_key(i) for i in ids]
            await self.cache.delete(*keys)

        self._record_write("delete")
        self.logger.info("Timbres deleted", count=len(ids))

    async def list_voice_names(
        self,
        tts_model_id: Optional[str],
        name: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Optional[List[VoiceName]]:
        """Voice names for a model, with the caller's trained clones first.

        Returns None rather than an empty list when nothing matches.
        """
        records = await self.timbres.select_list(
            "" if _is_blank(tts_model_id) else tts_model_id,
            name if not _is_blank(name) else None
        )
        voices = [VoiceName(id=record.id, name=record.name) for record in records]

        if user_id is not None:
            prefix = self.messages.voice_clone_prefix
            for clone in await self.clones.get_train_success(tts_model_id, user_id):
                voice = VoiceName(id=clone.id, name=prefix + clone.name)
                await self.cache.set(self.cache.name_key(voice.id), voice.name, ttl=NOT_EXPIRE)
                voices.insert(0, voice)

        return voices or None

    async def get_name_by_id(self, voice_id: Optional[str]) -> Optional[str]:
        """Display name of a timbre or voice clone."""
        if _is_blank(voice_id):
            return None

        key = self.cache.name_key(voice_id)
        cached = await self.cache.get(key)
        if isinstance(cached, str) and not _is_blank(cached):
            self._record_lookup("name", True)
            return cached
        self._record_lookup("name", False)

        record = await self.timbres.select_by_id(voice_id)
        if record is not None:
            if not _is_blank(record.name):
                await self.cache.set(key, record.name)
            return record.name

        clone = await self.clones.select_by_id(voice_id)
        if clone is not None:
            name = self.messages.voice_clone_prefix + clone.name
            await self.cache.set(key, name, ttl=NOT_EXPIRE)
            return name

        return None

    async def get_by_voice_code(self, tts_model_id: Optional[str], voice_code: Optional[str]) -> Optional[VoiceName]:
        if _is_blank(voice_code):
            return None

        records = await self.timbres.select_list(tts_model_id, tts_voice=voice_code)
        if not records:
            return None
        return VoiceName(id=records[0].id, name=records[0].name)
