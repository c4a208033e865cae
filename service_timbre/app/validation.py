"""
TTS model id validation.

Timbres must belong to a TTS model configured in the model-configuration
module. The check is a capability injected into the timbre service so the
two modules stay decoupled.
"""

from typing import Optional, Protocol

from shared.errors import ValidationError
from shared.logging import get_logger
from .persistence.postgres import PostgreSQLPersistence


class TtsModelValidator(Protocol):
    """Answers whether an id names a configured TTS model."""

    async def validate(self, model_id: str) -> bool:
        ...


class AcceptAllModelValidator:
    """Accepts every model id."""

    async def validate(self, model_id: str) -> bool:
        return True


class ModelConfigValidator:
    """Checks ids against the model-configuration table."""

    def __init__(self, persistence: PostgreSQLPersistence):
        self.persistence = persistence
        self.logger = get_logger("timbre.validation")

    async def validate(self, model_id: str) -> bool:
        async with self.persistence.connection() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM ai_model_config WHERE id = $1 AND model_type = 'TTS'",
                model_id
            )
        if not found:
            self.logger.warning("Unknown TTS model id", tts_model_id=model_id)
        return bool(found)


async def ensure_tts_model(validator: TtsModelValidator, model_id: Optional[str]):
    """Raise ValidationError unless ``model_id`` names a TTS model."""
    if not model_id or not await validator.validate(model_id):
        raise ValidationError(
            "Invalid TTS model id",
            details={"tts_model_id": model_id}
        )
