"""Typed bindings for the TakeoutFM video endpoints."""

from __future__ import annotations

from typing import Sequence

from takeout_tv.backend.auth.session_manager import SessionManager
from takeout_tv.backend.client.wire import (
    GenreView,
    HomeView,
    MovieView,
    MoviesView,
    Offset,
    Offsets,
    ProfileView,
    ProgressView,
    SearchView,
    TVEpisodeView,
    TVListView,
    TVSeriesView,
    TVShowsView,
)
from takeout_tv.backend.common.errors import AuthenticationError
from takeout_tv.backend.common.logging import get_logger
from takeout_tv.backend.network_handlers.session import NetError

log = get_logger(__name__)


class CatalogClient:
    def __init__(self, session: SessionManager) -> None:
        self._session = session

    @property
    def session(self) -> SessionManager:
        return self._session

    def home(self) -> HomeView:
        return self._get(HomeView, "home")

    def movies(self) -> MoviesView:
        return self._get(MoviesView, "movies")

    def movie(self, movie_id: int) -> MovieView:
        return self._get(MovieView, "movie", id=int(movie_id))

    def genre(self, name: str) -> GenreView:
        return self._get(GenreView, "movie_genre", name=name)

    def tv_list(self) -> TVListView:
        return self._get(TVListView, "tv")

    def tv_shows(self) -> TVShowsView:
        return self._get(TVShowsView, "tv_series_list")

    def tv_series(self, series_id: int) -> TVSeriesView:
        return self._get(TVSeriesView, "tv_series", id=int(series_id))

    def tv_episode(self, episode_id: int) -> TVEpisodeView:
        return self._get(TVEpisodeView, "tv_episode", id=int(episode_id))

    def profile(self, peid: int) -> ProfileView:
        return self._get(ProfileView, "profile", peid=int(peid))

    def search(self, query: str) -> SearchView:
        path = self._session.urls.path_for("search")
        return self._session.request_model(SearchView, "GET", path, params={"q": query})

    def progress(self) -> ProgressView:
        return self._get(ProgressView, "progress")

    def update_progress(self, offsets: Sequence[Offset]) -> int:
        """Push a batch of offsets; the HTTP status is the only result.

        Never raises for HTTP or transport failures: 0 means no response was
        received and 401 means the session could not be recovered.
        """

        path = self._session.urls.path_for("progress")
        body = Offsets(offsets=list(offsets)).model_dump(by_alias=True, exclude_none=True)
        try:
            response = self._session.request_authenticated(
                "POST",
                path,
                body=body,
                allowed_statuses=range(400, 600),
            )
        except AuthenticationError as exc:
            log.warning("progress push not authorized: %s", exc)
            return 401
        except NetError as exc:
            log.warning("progress push failed: %s", exc)
            return exc.status_code

        return response.status_code

    def _get(self, model, endpoint_key: str, **fmt_args):
        path = self._session.urls.path_for(endpoint_key, **fmt_args)
        return self._session.request_model(model, "GET", path)
