"""
Timbre service for the voice platform.
"""

from typing import List, Optional

from fastapi import HTTPException, Query, Body, Header
from shared.base_service import BaseService
from shared.config import ServiceConfig

from .cache.redis_cache import RedisCache
from .messages import MessageProvider
from .models import TimbreData, TimbreDetails, TimbrePage, VoiceName
from .persistence.postgres import PostgreSQLPersistence
from .service import TimbreLookupCache
from .validation import AcceptAllModelValidator, ModelConfigValidator


class TimbreService(BaseService):
    """Timbre service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        super().__init__("timbre", 8013, config)

        self.persistence = PostgreSQLPersistence(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool,
            max_size=self.config.postgres_max_pool,
            command_timeout=self.config.postgres_command_timeout
        )
        self.cache = RedisCache(
            self.config.redis_url,
            namespace=self.config.cache_namespace,
            default_ttl=self.config.cache_default_ttl
        )
        if self.config.validate_tts_model:
            validator = ModelConfigValidator(self.persistence)
        else:
            validator = AcceptAllModelValidator()

        self.timbres = TimbreLookupCache(
            self.persistence,
            self.cache,
            validator=validator,
            messages=MessageProvider(self.config.locale),
            metrics=self.metrics,
            invalidate_on_delete=self.config.invalidate_on_delete
        )

        self._setup_timbre_routes()

    def _setup_timbre_routes(self):
        """Set up timbre-specific routes."""
        user_header = self.config.user_id_header

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "timbre",
                "message": "Voice platform - Timbre Service",
                "version": "1.0.0",
                "capabilities": ["caching", "persistence", "voice_clone_names"]
            }

        @self.app.get("/ttsVoice", response_model=TimbrePage)
        async def page_timbres(
            tts_model_id: str = Query(..., alias="ttsModelId", min_length=1, description="TTS model ID"),
            name: Optional[str] = Query(None, description="Timbre name substring"),
            page: int = Query(1, ge=1, description="Page number"),
            limit: int = Query(10, ge=1, le=100, description="Items per page")
        ):
            """Page through the timbres of a TTS model."""
            return await self.timbres.list(page, limit, tts_model_id, name)

        @self.app.get("/ttsVoice/names", response_model=Optional[List[VoiceName]])
        async def voice_names(
            tts_model_id: Optional[str] = Query(None, alias="ttsModelId"),
            voice_name: Optional[str] = Query(None, alias="voiceName"),
            user_id: Optional[int] = Header(None, alias=user_header)
        ):
            """Voice names for a model, the caller's trained clones first."""
            return await self.timbres.list_voice_names(tts_model_id, voice_name, user_id=user_id)

        @self.app.get("/ttsVoice/names/{voice_id}")
        async def voice_name(voice_id: str):
            """Display name of a timbre or voice clone."""
            name = await self.timbres.get_name_by_id(voice_id)
            if name is None:
                raise HTTPException(status_code=404, detail="Voice not found")
            return {"id": voice_id, "name": name}

        @self.app.get("/ttsVoice/voiceCode", response_model=VoiceName)
        async def voice_by_code(
            tts_model_id: str = Query(..., alias="ttsModelId"),
            voice_code: str = Query(..., alias="voiceCode")
        ):
            """Look up a timbre by its voice code."""
            voice = await self.timbres.get_by_voice_code(tts_model_id, voice_code)
            if voice is None:
                raise HTTPException(status_code=404, detail="Voice not found")
            return voice

        @self.app.get("/ttsVoice/{timbre_id}", response_model=TimbreDetails)
        async def get_timbre(timbre_id: str):
            """Get timbre details."""
            details = await self.timbres.get_details(timbre_id)
            if details is None:
                raise HTTPException(status_code=404, detail="Timbre not found")
            return details

        @self.app.post("/ttsVoice", status_code=201)
        async def create_timbre(
            data: TimbreData,
            user_id: Optional[int] = Header(None, alias=user_header)
        ):
            """Create a timbre."""
            timbre_id = await self.timbres.create(data, user_id=user_id)
            return {"id": timbre_id}

        @self.app.put("/ttsVoice/{timbre_id}")
        async def update_timbre(
            timbre_id: str,
            data: TimbreData,
            user_id: Optional[int] = Header(None, alias=user_header)
        ):
            """Update a timbre."""
            await self.timbres.update(timbre_id, data, user_id=user_id)
            return {"success": True}

        @self.app.post("/ttsVoice/delete")
        async def delete_timbres(ids: List[str] = Body(..., min_length=1)):
            """Batch delete timbres."""
            await self.timbres.delete(ids)
            return {"success": True, "deleted": len(ids)}

    async def _check_dependencies(self):
        """Check timbre service dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
        except Exception:
            dependencies["redis"] = "error"

        try:
            dependencies["postgres"] = "ok" if await self.persistence.health_check() else "error"
        except Exception:
            dependencies["postgres"] = "error"

        return dependencies

    async def start(self):
        """Start timbre service components."""
        await self.persistence.start()
        await self.cache.start()

        self.logger.info("Timbre service started")

    async def stop(self):
        """Stop timbre service components."""
        await self.persistence.stop()
        await self.cache.stop()

        self.logger.info("Timbre service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create timbre service application."""
    service = TimbreService(config)
    return service.app


if __name__ == "__main__":
    service = TimbreService()
    service.run()
