"""
Timbre data models.
"""

from typing import Optional, List
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class TrainStatus(IntEnum):
    """Voice clone training status."""
    PENDING = 0
    TRAINING = 1
    SUCCESS = 2
    FAILED = 3


@dataclass
class TimbreRecord:
    """Row of the ai_tts_voice table."""
    id: str
    tts_model_id: str
    name: str
    tts_voice: Optional[str] = None
    languages: Optional[str] = None
    remark: Optional[str] = None
    reference_audio: Optional[str] = None
    reference_text: Optional[str] = None
    sort: int = 0
    voice_demo: Optional[str] = None
    creator: Optional[int] = None
    create_date: Optional[datetime] = None
    updater: Optional[int] = None
    update_date: Optional[datetime] = None


@dataclass
class VoiceCloneRecord:
    """Row of the ai_voice_clone table."""
    id: str
    name: str
    model_id: Optional[str] = None
    voice_id: Optional[str] = None
    languages: Optional[str] = None
    user_id: Optional[int] = None
    train_status: TrainStatus = TrainStatus.PENDING
    train_error: Optional[str] = None


class TimbreData(BaseModel):
    """Input for creating or updating a timbre."""
    model_config = ConfigDict(populate_by_name=True)

    tts_model_id: str = Field(..., alias="ttsModelId", min_length=1, description="Owning TTS model ID")
    name: str = Field(..., min_length=1, description="Display name")
    tts_voice: str = Field(..., alias="ttsVoice", min_length=1, description="Voice code")
    languages: Optional[str] = Field(None, description="Supported languages")
    remark: Optional[str] = Field(None, description="Remark")
    reference_audio: Optional[str] = Field(None, alias="referenceAudio", description="Reference audio path")
    reference_text: Optional[str] = Field(None, alias="referenceText", description="Reference audio transcript")
    sort: int = Field(0, ge=0, description="Sort order")
    voice_demo: Optional[str] = Field(None, alias="voiceDemo", description="Demo audio URL")


class TimbreDetails(BaseModel):
    """Detail projection of a timbre."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    tts_model_id: str = Field(..., alias="ttsModelId")
    name: str
    tts_voice: Optional[str] = Field(None, alias="ttsVoice")
    languages: Optional[str] = None
    remark: Optional[str] = None
    reference_audio: Optional[str] = Field(None, alias="referenceAudio")
    reference_text: Optional[str] = Field(None, alias="referenceText")
    sort: int = 0
    voice_demo: Optional[str] = Field(None, alias="voiceDemo")

    @classmethod
    def from_record(cls, record: TimbreRecord) -> "TimbreDetails":
        return cls(
            id=record.id,
            tts_model_id=record.tts_model_id,
            name=record.name,
            tts_voice=record.tts_voice,
            languages=record.languages,
            remark=record.remark,
            reference_audio=record.reference_audio,
            reference_text=record.reference_text,
            sort=record.sort,
            voice_demo=record.voice_demo,
        )


class VoiceName(BaseModel):
    """{id, name} projection used by voice pickers."""
    id: str
    name: Optional[str] = None


class TimbrePage(BaseModel):
    """Response model for a page of timbres."""
    items: List[TimbreDetails]
    total: int
    page: int
    limit: int


def record_from_data(timbre_id: str, data: TimbreData) -> TimbreRecord:
    """Map input data onto a record with the given identity."""
    return TimbreRecord(
        id=timbre_id,
        tts_model_id=data.tts_model_id,
        name=data.name,
        tts_voice=data.tts_voice,
        languages=data.languages,
        remark=data.remark,
        reference_audio=data.reference_audio,
        reference_text=data.reference_text,
        sort=data.sort,
        voice_demo=data.voice_demo,
    )
