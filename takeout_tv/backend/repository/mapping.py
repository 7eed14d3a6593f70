"""Translate wire entities into domain entities."""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from takeout_tv.backend.client import wire
from takeout_tv.backend.network_handlers.url_manager import URLManager
from takeout_tv.backend.repository.models import (
    Cast,
    Detail,
    EpisodeInfo,
    Person,
    Profile,
    Series,
    Video,
    VideoType,
)

DIGIT_CATEGORY = "#"


def movie_uri(movie_id: int) -> str:
    return f"takeout://movies/{movie_id}"


def episode_uri(episode_id: int) -> str:
    return f"takeout://tv/episodes/{episode_id}"


def series_uri(series_id: int) -> str:
    return f"takeout://tv/series/{series_id}"


def season_uri(series_id: int, season: int) -> str:
    return f"takeout://tv/series/{series_id}/season/{season}"


def person_uri(peid: int) -> str:
    return f"takeout://people/{peid}"


def category(title: str) -> str:
    """Browse-by-letter bucket: upper-cased first character, digits share ``#``."""

    if not title:
        return DIGIT_CATEGORY
    first = title[0]
    if first.isdigit():
        return DIGIT_CATEGORY
    return first.upper()


def iso8601(runtime_minutes: int) -> str:
    hours, minutes = divmod(max(0, runtime_minutes), 60)
    return f"PT{hours:02d}H{minutes:02d}M"


def year(value: Optional[str]) -> int:
    if not value:
        return -1
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).year
    except ValueError:
        pass
    try:
        return date.fromisoformat(value[:10]).year
    except ValueError:
        return -1


def etag_key(etag: str) -> str:
    return etag.replace('"', "")


def vote(vote_average: Optional[float]) -> int:
    if vote_average is None:
        return 0
    return max(0, min(100, int(vote_average * 10)))


class VideoMapper:
    """Builds domain entities with image URLs rooted at the user's server."""

    def __init__(self, urls: URLManager) -> None:
        self._urls = urls

    def movie(self, m: wire.Movie) -> Video:
        uri = movie_uri(m.id)
        return Video(
            id=uri,
            name=m.title,
            description=m.overview,
            uri=uri,
            video_uri="",  # resolved from the detail view
            thumbnail_uri=self._urls.image_url("poster", m.poster_path),
            background_image_uri=self._urls.image_url("backdrop", m.backdrop_path),
            category=category(m.sort_title or m.title),
            video_type=VideoType.MOVIE,
            year=year(m.date),
            rating=m.rating,
            tagline=m.tagline,
            duration=iso8601(m.runtime),
            vote=vote(m.vote_average),
            etag=etag_key(m.etag),
        )

    def episode(self, s: wire.TVSeries, e: wire.TVEpisode) -> Video:
        uri = episode_uri(e.id)
        return Video(
            id=uri,
            name=e.name,
            description=e.overview,
            uri=uri,
            video_uri="",
            thumbnail_uri=self._urls.image_url("still", e.still_path),
            background_image_uri=self._urls.image_url("backdrop", s.backdrop_path),
            category=category(s.sort_name or s.name),
            video_type=VideoType.EPISODE,
            year=year(e.date),
            rating=s.rating,
            tagline=s.tagline,
            duration=iso8601(e.runtime),
            vote=vote(e.vote_average),
            etag=etag_key(e.etag),
            episode=EpisodeInfo(
                season_number=e.season,
                episode_number=e.episode,
                series_uri=series_uri(s.id),
                season_uri=season_uri(s.id, e.season),
            ),
        )

    def series(self, s: wire.TVSeries, episodes: Iterable[wire.TVEpisode]) -> Series:
        return Series(
            id=series_uri(s.id),
            name=s.name,
            thumbnail_uri=self._urls.image_url("poster", s.poster_path),
            background_image_uri=self._urls.image_url("backdrop", s.backdrop_path),
            tagline=s.tagline,
            rating=s.rating,
            year=year(s.date),
            vote=vote(s.vote_average),
            season_count=s.season_count,
            episode_count=s.episode_count,
            episodes=[self.episode(s, e) for e in episodes],
        )

    def person(self, p: wire.Person) -> Person:
        return Person(
            id=person_uri(p.peid),
            name=p.name,
            bio=p.bio or "",
            birthplace=p.birthplace or "",
            birthday=year(p.birthday),
            thumbnail_uri=self._urls.image_url("profile", p.profile_path),
        )

    def cast(self, c: wire.Cast) -> Cast:
        return Cast(id=f"takeout://cast/{c.id}", person=self.person(c.person), character=c.character)

    def movie_detail(self, view: wire.MovieView, headers: Mapping[str, str]) -> Detail:
        uri = f"{self._urls.base_url}{view.location}"
        return Detail(
            id=f"{movie_uri(view.movie.id)}/detail",
            uri=uri,
            headers=dict(headers),
            video=self.movie(view.movie).model_copy(update={"video_uri": uri}),
            genres=list(view.genres or []),
            cast=[self.cast(c) for c in view.cast or []],
            related=[self.movie(m) for m in view.other or []],
        )

    def episode_detail(self, view: wire.TVEpisodeView, headers: Mapping[str, str]) -> Detail:
        uri = f"{self._urls.base_url}{view.location}"
        return Detail(
            id=f"{episode_uri(view.episode.id)}/detail",
            uri=uri,
            headers=dict(headers),
            video=self.episode(view.series, view.episode).model_copy(update={"video_uri": uri}),
            genres=[],
            cast=[self.cast(c) for c in view.cast or []],
            related=[],
        )

    def profile(
        self,
        view: wire.ProfileView,
        *,
        find_video: Callable[[str], Optional[Video]],
        find_series: Callable[[str], Optional[Series]],
    ) -> Profile:
        """Filmography is limited to titles present in the loaded catalog."""

        videos: List[Video] = []
        for m in view.movies.starring or []:
            found = find_video(movie_uri(m.id))
            if found is not None:
                videos.append(found)

        series: List[Series] = []
        for s in view.shows.starring or []:
            found_series = find_series(series_uri(s.id))
            if found_series is not None:
                series.append(found_series)

        return Profile(
            id=f"{person_uri(view.person.peid)}/profile",
            person=self.person(view.person),
            videos=videos,
            series=series,
        )


def group_episodes(episodes: Iterable[wire.TVEpisode]) -> Dict[int, List[wire.TVEpisode]]:
    grouped: Dict[int, List[wire.TVEpisode]] = {}
    for e in episodes:
        grouped.setdefault(e.tvid, []).append(e)
    return grouped
