"""In-memory catalog for the signed-in user.

The repository is either empty or fully loaded. :meth:`ContentRepository.load`
fetches the movie catalog, the TV catalog, the home feed and remote progress,
and publishes them together; a failed load publishes nothing. A warm cache is
never re-fetched implicitly: callers ask for a refresh, which clears first.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from takeout_tv.backend.auth.user_manager import UserManager
from takeout_tv.backend.client import wire
from takeout_tv.backend.client.catalog_client import CatalogClient
from takeout_tv.backend.common.errors import AuthenticationError, ServerError
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.network_handlers.session import Forbidden
from takeout_tv.backend.repository.mapping import VideoMapper, etag_key, group_episodes
from takeout_tv.backend.repository.models import (
    Detail,
    Profile,
    Series,
    Video,
    VideoGroup,
    VideoType,
)

log = get_logger(__name__)

NEW_RELEASES = "New Releases"
RECENTLY_ADDED = "Recently Added"

_MOVIE_PREFIX = "takeout://movies/"
_EPISODE_PREFIX = "takeout://tv/episodes/"
_SERIES_PREFIX = "takeout://tv/series/"
_PEOPLE_PREFIX = "takeout://people/"


class _Catalog:
    """One complete, immutable snapshot of the loaded catalog."""

    def __init__(
        self,
        movies: List[Video],
        series: List[Series],
        home_groups: List[VideoGroup],
        etag_index: Dict[str, Video],
    ) -> None:
        self.movies = movies
        self.series = series
        self.home_groups = home_groups
        self.etag_index = etag_index
        self.episodes = [e for s in series for e in s.episodes]
        self.by_id: Dict[str, Video] = {v.id: v for v in self.movies}
        self.by_id.update({e.id: e for e in self.episodes})
        self.series_by_id: Dict[str, Series] = {s.id: s for s in series}


def _parse_id(value: str, prefix: str) -> Optional[int]:
    if not value.startswith(prefix):
        return None
    head = value[len(prefix):].split("/", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


class ContentRepository:
    def __init__(self, users: UserManager, *, sign_out_on_any_failure: bool = False) -> None:
        self._users = users
        self._sign_out_on_any_failure = sign_out_on_any_failure

        self._catalog: Optional[_Catalog] = None
        self._offsets: Dict[str, wire.Offset] = {}
        # Bumped by clear_cache; a load only publishes if it is unchanged.
        self._generation = 0

        # _load_lock serializes check-then-fetch; _lock guards published state.
        self._load_lock = threading.Lock()
        self._lock = threading.Lock()

        users.set_sign_out_listener(self.clear_cache)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def users(self) -> UserManager:
        return self._users

    def is_loaded(self) -> bool:
        with self._lock:
            return self._catalog is not None

    def clear_cache(self) -> None:
        with self._lock:
            self._catalog = None
            self._offsets = {}
            self._generation += 1
        log.debug("catalog cache cleared")

    def load(self) -> None:
        """Populate the cache once per session; a no-op when already loaded or signed out.

        Authentication failures sign the user out. Other failures leave the
        cache empty and keep the session (or sign out as well when the
        repository was built with ``sign_out_on_any_failure``). The error is
        re-raised in both cases.
        """

        with self._load_lock:
            client = self._client()
            if client is None:
                return
            with self._lock:
                if self._catalog is not None:
                    return
                generation = self._generation

            try:
                catalog, offsets = self._fetch(client, VideoMapper(client.session.urls))
            except (AuthenticationError, Forbidden):
                log.warning("catalog load not authorized; signing out")
                self.clear_cache()
                self._users.sign_out()
                raise
            except ServerError as exc:
                self.clear_cache()
                if self._sign_out_on_any_failure:
                    log.warning("catalog load failed (%s); signing out", exc)
                    self._users.sign_out()
                else:
                    log.warning("catalog load failed (%s); keeping session", exc)
                raise

            with self._lock:
                if self._generation != generation:
                    log.info("catalog cleared during load; discarding fetched catalog")
                    return
                self._catalog = catalog
                self._offsets = offsets
            log.info(
                "catalog loaded: %d movies, %d series, %d episodes, %d offsets",
                len(catalog.movies),
                len(catalog.series),
                len(catalog.episodes),
                len(offsets),
            )

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------
    def get_home_groups(self) -> List[VideoGroup]:
        return list(self._loaded().home_groups)

    def get_all_videos(self, refresh: bool = False) -> List[Video]:
        return list(self._loaded(refresh).movies)

    def get_all_series(self, refresh: bool = False) -> List[Series]:
        return list(self._loaded(refresh).series)

    def get_all_episodes(self) -> List[Video]:
        return list(self._loaded().episodes)

    def get_browse_groups(self, refresh: bool = False) -> List[VideoGroup]:
        """Home shelves followed by one group per category of the movie catalog."""

        catalog = self._loaded(refresh)
        groups = list(catalog.home_groups)
        groups.extend(
            VideoGroup(category=name, videos=videos)
            for name, videos in _by_category(catalog.movies).items()
        )
        return groups

    def get_videos_by_category(self) -> Dict[str, List[Video]]:
        return _by_category(self._loaded().movies)

    def get_video_by_id(self, video_id: str) -> Optional[Video]:
        catalog = self._loaded()
        video = catalog.by_id.get(video_id)
        if video is None:
            video = catalog.etag_index.get(etag_key(video_id))
        return video

    def get_video_by_etag(self, etag: str) -> Optional[Video]:
        return self._loaded().etag_index.get(etag_key(etag))

    def get_video_by_video_uri(self, uri: str) -> Optional[Video]:
        if not uri:
            return None
        catalog = self._loaded()
        for video in catalog.by_id.values():
            if video.video_uri == uri:
                return video
        return None

    def get_all_videos_from_series(self, series_uri: str) -> List[Video]:
        return [e for e in self._loaded().episodes if e.series_uri == series_uri]

    def get_series_by_id(self, series_id: str) -> Optional[Series]:
        return self._loaded().series_by_id.get(series_id)

    # ------------------------------------------------------------------
    # Lazy fetches; failures yield nothing and never sign out
    # ------------------------------------------------------------------
    def get_video_detail(self, video_id: str) -> Optional[Detail]:
        client = self._client()
        if client is None:
            return None
        mapper = VideoMapper(client.session.urls)
        headers = client.session.media_headers()

        movie_id = _parse_id(video_id, _MOVIE_PREFIX)
        episode_id = _parse_id(video_id, _EPISODE_PREFIX)
        if movie_id is None and episode_id is None:
            video = self.get_video_by_id(video_id)
            if video is None:
                log.debug("no video for detail request %s", video_id)
                return None
            if video.video_type is VideoType.MOVIE:
                movie_id = _parse_id(video.id, _MOVIE_PREFIX)
            else:
                episode_id = _parse_id(video.id, _EPISODE_PREFIX)

        try:
            if movie_id is not None:
                return mapper.movie_detail(client.movie(movie_id), headers)
            if episode_id is not None:
                return mapper.episode_detail(client.tv_episode(episode_id), headers)
        except (AuthenticationError, ServerError) as exc:
            log.warning("detail fetch for %s failed: %s", video_id, exc)
        return None

    def get_series_detail(self, series_id: str) -> Optional[Series]:
        client = self._client()
        sid = _parse_id(series_id, _SERIES_PREFIX)
        if client is None or sid is None:
            return None
        try:
            view = client.tv_series(sid)
        except (AuthenticationError, ServerError) as exc:
            log.warning("series fetch for %s failed: %s", series_id, exc)
            return None
        episodes = sorted(view.episodes, key=lambda e: (e.season, e.episode))
        return VideoMapper(client.session.urls).series(view.series, episodes)

    def get_profile(self, person_id: str) -> Optional[Profile]:
        client = self._client()
        peid = _parse_id(person_id, _PEOPLE_PREFIX)
        if client is None or peid is None:
            return None
        try:
            view = client.profile(peid)
            self.load()
        except (AuthenticationError, ServerError) as exc:
            log.warning("profile fetch for %s failed: %s", person_id, exc)
            return None
        catalog = self._loaded()
        return VideoMapper(client.session.urls).profile(
            view,
            find_video=catalog.by_id.get,
            find_series=catalog.series_by_id.get,
        )

    def search(self, query: str) -> List[Video]:
        client = self._client()
        if client is None or not query.strip():
            return []
        try:
            view = client.search(query)
        except (AuthenticationError, ServerError) as exc:
            log.warning("search for %r failed: %s", query, exc)
            return []
        mapper = VideoMapper(client.session.urls)
        return [mapper.movie(m) for m in view.movies or []]

    def get_genre(self, name: str) -> List[Video]:
        client = self._client()
        if client is None:
            return []
        try:
            view = client.genre(name)
        except (AuthenticationError, ServerError) as exc:
            log.warning("genre fetch for %r failed: %s", name, exc)
            return []
        mapper = VideoMapper(client.session.urls)
        return [mapper.movie(m) for m in view.movies]

    # ------------------------------------------------------------------
    # Remote progress index (etag -> Offset)
    # ------------------------------------------------------------------
    def get_offset(self, etag: str) -> Optional[wire.Offset]:
        with self._lock:
            return self._offsets.get(etag_key(etag))

    def put_offset(self, offset: wire.Offset) -> None:
        with self._lock:
            self._offsets[etag_key(offset.etag)] = offset

    def replace_offsets(self, offsets: Iterable[wire.Offset]) -> None:
        index = {etag_key(o.etag): o for o in offsets}
        with self._lock:
            self._offsets = index

    def offsets(self) -> List[wire.Offset]:
        with self._lock:
            return list(self._offsets.values())

    def catalog_client(self) -> Optional[CatalogClient]:
        return self._client()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _client(self) -> Optional[CatalogClient]:
        session = self._users.session()
        return CatalogClient(session) if session is not None else None

    def _loaded(self, refresh: bool = False) -> _Catalog:
        if refresh:
            self.clear_cache()
        self.load()
        with self._lock:
            catalog = self._catalog
        return catalog if catalog is not None else _Catalog([], [], [], {})

    def _fetch(self, client: CatalogClient, mapper: VideoMapper) -> Tuple[_Catalog, Dict[str, wire.Offset]]:
        movies = [mapper.movie(m) for m in client.movies().movies]

        tv = client.tv_list()
        episodes_by_tvid = group_episodes(tv.episodes)
        series = [
            mapper.series(s, sorted(episodes_by_tvid.get(s.tvid, []), key=lambda e: (e.season, e.episode)))
            for s in tv.series
        ]

        etag_index: Dict[str, Video] = {}
        for video in movies:
            etag_index[video.etag] = video
        for s in series:
            for episode in s.episodes:
                etag_index[episode.etag] = episode

        home = client.home()
        home_groups: List[VideoGroup] = []
        for rec in home.recommend_movies or []:
            videos = []
            for m in rec.movies:
                found = etag_index.get(etag_key(m.etag))
                if found is None:
                    log.debug("dropping %r from shelf %r: not in catalog", m.title, rec.name)
                    continue
                videos.append(found)
            home_groups.append(VideoGroup(category=rec.name, videos=videos))
        if home.new_movies:
            home_groups.append(VideoGroup(category=NEW_RELEASES, videos=[mapper.movie(m) for m in home.new_movies]))
        if home.added_movies:
            home_groups.append(VideoGroup(category=RECENTLY_ADDED, videos=[mapper.movie(m) for m in home.added_movies]))

        offsets = {etag_key(o.etag): o for o in client.progress().offsets}

        return _Catalog(movies, series, home_groups, etag_index), offsets


def _by_category(videos: Iterable[Video]) -> Dict[str, List[Video]]:
    groups: Dict[str, List[Video]] = {}
    for video in videos:
        groups.setdefault(video.category, []).append(video)
    return groups
