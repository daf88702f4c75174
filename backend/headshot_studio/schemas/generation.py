"""Pydantic schemas for generation endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from headshot_studio.models.generation import GenerationKind, GenerationStatus

AspectRatio = Literal["1:1", "16:9", "9:16", "4:3", "3:4", "3:2", "2:3", "match_input_image"]


class HeadshotParameters(BaseModel):
    """Options for a professional headshot."""

    gender: Optional[Literal["male", "female", "none"]] = Field(default=None)
    background: str = Field(default="neutral", max_length=100)
    aspect_ratio: AspectRatio = Field(default="1:1")
    seed: Optional[int] = Field(default=None, ge=0)


class ImageEditParameters(BaseModel):
    """Options for a prompt-driven image edit."""

    prompt: str = Field(..., min_length=1, max_length=2000)
    output_format: Literal["jpg", "png", "webp"] = Field(default="jpg")

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Prompt is required")
        return v


class GenerationRecordResponse(BaseModel):
    """One settled generation attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: GenerationKind
    status: GenerationStatus
    parameters: dict[str, Any] = Field(default_factory=dict)
    result_url: Optional[str] = None
    credits_charged: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class GenerationResponse(BaseModel):
    """Successful generation."""

    success: bool = True
    image_url: str = Field(description="URL of the generated image")
    credits_remaining: int = Field(ge=0)
    generation: GenerationRecordResponse


class GenerationHistoryResponse(BaseModel):
    """Most recent generations, newest first."""

    generations: list[GenerationRecordResponse]
    count: int = Field(ge=0)
