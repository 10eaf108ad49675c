"""Pydantic schemas for the song catalog API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class SongCreate(BaseModel):
    title: str = Field(..., description="Display title")
    author: str = Field(..., description="Performing artist")
    song_path: str = Field(..., description="Object key of the audio file in the songs bucket")
    image_path: str | None = Field(
        default=None, description="Object key of the artwork in the images bucket"
    )

    @field_validator("title", "author", "song_path")
    @classmethod
    def _require_text(cls, value: str) -> str:
        candidate = (value or "").strip()
        if not candidate:
            raise ValueError("value must not be empty")
        return candidate


class SongResponse(BaseModel):
    id: str
    user_id: str | None = None
    title: str
    author: str
    song_path: str
    image_path: str | None = None
    song_url: str | None = None
    image_url: str | None = None
    created_at: datetime


class SongListResponse(BaseModel):
    items: list[SongResponse]


class LikeStatusResponse(BaseModel):
    song_id: str
    liked: bool
