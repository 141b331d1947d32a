"""
Pydantic schemas for video analysis payloads.

A SourceAnalysis is the structured description of one video produced by the
external analysis service. The service emits camelCase keys
(``visualContent``, ``keyElements``...), so every model accepts both the
alias and the Python field name.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _AnalysisModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ========================================
# Analysis Sections
# ========================================

class VisualEntry(_AnalysisModel):
    """One scene of the visual timeline."""

    timestamp: str = Field("", description="Position in the video", examples=["00:15"])
    scene: str = Field("", description="Scene description")
    text: Optional[str] = Field(None, description="On-screen text, if any")
    key_elements: List[str] = Field(
        default_factory=list,
        alias="keyElements",
        examples=[["flour", "yeast"]],
    )
    fragment: int = Field(
        0, description="1-based position when an oversized scene was split, else 0"
    )

    def dedupe_key(self) -> tuple:
        return (self.timestamp, self.scene, self.fragment)

    def to_payload(self) -> dict:
        """Serialize with the external camelCase keys."""
        payload = {
            "timestamp": self.timestamp,
            "scene": self.scene,
            "keyElements": list(self.key_elements),
        }
        if self.text:
            payload["text"] = self.text
        if self.fragment:
            payload["fragment"] = self.fragment
        return payload


class AudioSummary(_AnalysisModel):
    """Speech, music and sound effects heard in the video."""

    speech: str = ""
    music: str = ""
    sound_effects: List[str] = Field(default_factory=list, alias="soundEffects")
    instructions: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.speech or self.music or self.sound_effects or self.instructions)

    def to_payload(self) -> dict:
        payload = {
            "speech": self.speech,
            "music": self.music,
            "soundEffects": list(self.sound_effects),
        }
        if self.instructions:
            payload["instructions"] = self.instructions
        return payload


class TopicEntry(_AnalysisModel):
    """A topic discussed in the video with its relevance in [0, 1]."""

    name: str
    relevance: float = Field(0.0, ge=0.0, le=1.0)
    context: str = ""

    @field_validator("relevance", mode="before")
    @classmethod
    def clamp_relevance(cls, v):
        """Analysis output occasionally drifts outside [0, 1]."""
        if v is None:
            return 0.0
        return min(1.0, max(0.0, float(v)))

    def to_payload(self) -> dict:
        return {"name": self.name, "relevance": self.relevance, "context": self.context}


class TechnicalDetails(_AnalysisModel):
    quality: str = ""
    effects: List[str] = Field(default_factory=list)
    editing: str = ""

    def to_payload(self) -> dict:
        return {"quality": self.quality, "effects": list(self.effects), "editing": self.editing}


# ========================================
# Top-level Payloads
# ========================================

class SourceAnalysis(_AnalysisModel):
    """
    Structured description of one video.

    Immutable once received. Missing sections default to empty values so
    chunk construction never fails on a partial analysis.
    """

    title: str = ""
    summary: str = ""
    visual_content: List[VisualEntry] = Field(default_factory=list, alias="visualContent")
    audio_content: AudioSummary = Field(default_factory=AudioSummary, alias="audioContent")
    topics: List[TopicEntry] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(
        default_factory=TechnicalDetails, alias="technicalDetails"
    )
    searchable_keywords: List[str] = Field(default_factory=list, alias="searchableKeywords")

    @field_validator("audio_content", "technical_details", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return {} if v is None else v

    @field_validator("visual_content", "topics", "searchable_keywords", mode="before")
    @classmethod
    def none_to_empty_list(cls, v):
        return [] if v is None else v


class SubmissionMetadata(_AnalysisModel):
    """Who submitted the video and from which account."""

    media_type: str = Field("", alias="mediaType", examples=["VIDEO"])
    external_id: str = Field("", alias="instaId", description="Source platform account id")
    username: str = ""
    display_name: str = Field("", alias="name")
