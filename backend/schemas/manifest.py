"""Manifest schemas, serialized with the camelCase keys clients expect."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ManifestAlbum(_CamelModel):
    """Album entry with cover asset metadata."""

    id: str
    title: str
    artist: str
    cover_filename: str | None = None
    cover_url: str | None = None
    cover_size: int | None = None
    cover_md5: str | None = Field(default=None, alias="coverMD5")
    updated_at: int | None = None


class ManifestTrack(_CamelModel):
    """Track entry with audio asset metadata."""

    id: str
    title: str
    artist: str
    genre: str
    album_id: str | None = None
    audio_filename: str | None = None
    audio_url: str | None = None
    audio_size: int | None = None
    audio_md5: str | None = Field(default=None, alias="audioMD5")
    updated_at: int | None = None


class ManifestResponse(_CamelModel):
    """Full catalog snapshot consumed by the sync client."""

    generated_at: int
    version: int
    albums: list[ManifestAlbum] = Field(default_factory=list)
    tracks: list[ManifestTrack] = Field(default_factory=list)
