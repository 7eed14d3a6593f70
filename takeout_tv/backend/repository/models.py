"""Domain entities handed to the presentation layer.

Movies and TV episodes share one :class:`Video` shape tagged by
:class:`VideoType`; episode-only fields live in the optional
:class:`EpisodeInfo` payload, which is present exactly for episodes.
"""

from __future__ import annotations

import re
import time
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

_ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


class VideoType(str, Enum):
    MOVIE = "movie"
    EPISODE = "episode"


class EpisodeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    season_number: int = Field(ge=0)
    episode_number: int = Field(ge=0)
    series_uri: str
    season_uri: str


class Video(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    uri: str
    video_uri: str = ""
    thumbnail_uri: str = ""
    background_image_uri: str = ""
    category: str
    video_type: VideoType
    year: int = -1
    rating: str = ""
    tagline: str = ""
    duration: str = "PT00H00M"
    vote: int = Field(default=0, ge=0, le=100)
    etag: str
    episode: Optional[EpisodeInfo] = None

    @model_validator(mode="after")
    def _episode_payload_matches_type(self) -> "Video":
        if (self.video_type is VideoType.EPISODE) != (self.episode is not None):
            raise ValueError("episode details are required for episodes and only for episodes")
        return self

    @property
    def series_uri(self) -> Optional[str]:
        return self.episode.series_uri if self.episode else None

    @property
    def season_number(self) -> Optional[int]:
        return self.episode.season_number if self.episode else None

    @property
    def episode_number(self) -> Optional[int]:
        return self.episode.episode_number if self.episode else None

    def duration_ms(self) -> int:
        match = _ISO_DURATION_RE.match(self.duration or "")
        if match is None:
            return 0
        parts = {k: float(v) if v else 0.0 for k, v in match.groupdict().items()}
        seconds = parts["days"] * 86400 + parts["hours"] * 3600 + parts["minutes"] * 60 + parts["seconds"]
        return int(seconds * 1000)


class VideoGroup(BaseModel):
    category: str
    videos: List[Video] = Field(default_factory=list)


class Series(BaseModel):
    id: str
    name: str
    thumbnail_uri: str = ""
    background_image_uri: str = ""
    tagline: str = ""
    rating: str = ""
    year: int = -1
    vote: int = Field(default=0, ge=0, le=100)
    season_count: int = 0
    episode_count: int = 0
    episodes: List[Video] = Field(default_factory=list)


class Person(BaseModel):
    id: str
    name: str
    bio: str = ""
    birthplace: str = ""
    birthday: int = -1
    thumbnail_uri: str = ""


class Cast(BaseModel):
    id: str
    person: Person
    character: str = ""


class Detail(BaseModel):
    """Extended, lazily fetched information about one video.

    ``uri`` is directly playable; it must be requested with ``headers``,
    which carry the media token rather than the API access token.
    """

    id: str
    uri: str
    headers: Dict[str, str] = Field(default_factory=dict)
    video: Video
    genres: Sequence[str] = Field(default_factory=list)
    cast: Sequence[Cast] = Field(default_factory=list)
    related: Sequence[Video] = Field(default_factory=list)


class Profile(BaseModel):
    id: str
    person: Person
    videos: List[Video] = Field(default_factory=list)
    series: List[Series] = Field(default_factory=list)


def _now_ms() -> int:
    return int(time.time() * 1000)


class Progress(BaseModel):
    """A playback position for one video; position and duration in milliseconds."""

    id: str
    position: int = Field(ge=0)
    duration: Optional[int] = Field(default=None, ge=0)
    timestamp: int = Field(default_factory=_now_ms)
