import json

import pytest
import responses

from takeout_tv.backend.client.catalog_client import CatalogClient
from takeout_tv.backend.client.wire import Offset
from takeout_tv.backend.network_handlers.session import InvalidResponse, NotFound

from conftest import BASE, EPISODES, MOVIES, SERIES


@pytest.fixture
def client(session):
    return CatalogClient(session)


@responses.activate
def test_home_tolerates_missing_shelves(client):
    responses.add(responses.GET, f"{BASE}/api/home", json={"AddedMovies": [MOVIES[0]], "NewMovies": []}, status=200)

    home = client.home()

    assert [m.title for m in home.added_movies] == ["Alien"]
    assert home.recommend_movies is None
    assert home.added_tv_episodes is None


@responses.activate
def test_tv_list_parses_series_and_episodes(client):
    responses.add(responses.GET, f"{BASE}/api/tv", json={"Series": SERIES, "Episodes": EPISODES}, status=200)

    tv = client.tv_list()

    assert [s.tvid for s in tv.series] == [1396, 1399]
    assert tv.episodes[0].season == 1
    assert tv.episodes[0].etag == '"etag-bb-1"'


@responses.activate
def test_tv_shows_and_series_detail(client):
    responses.add(responses.GET, f"{BASE}/api/tv/series", json={"Series": SERIES}, status=200)
    responses.add(
        responses.GET,
        f"{BASE}/api/tv/series/10",
        json={"Series": SERIES[0], "Episodes": EPISODES[:1], "Genres": ["Drama"]},
        status=200,
    )

    assert [s.name for s in client.tv_shows().series] == ["Breaking Bad", "Game of Thrones"]
    view = client.tv_series(10)
    assert view.genres == ["Drama"]
    assert view.episodes[0].name == "Pilot"


@responses.activate
def test_movie_detail_path(client):
    responses.add(
        responses.GET,
        f"{BASE}/api/movies/42",
        json={"Movie": MOVIES[0], "Location": "/api/movies/42/location", "Genres": ["Horror"]},
        status=200,
    )

    view = client.movie(42)

    assert view.location == "/api/movies/42/location"
    assert view.genres == ["Horror"]
    assert view.cast is None


@responses.activate
def test_genre_name_is_escaped(client):
    responses.add(responses.GET, f"{BASE}/api/movie-genres/Science%20Fiction", json={"Name": "Science Fiction"}, status=200)

    assert client.genre("Science Fiction").name == "Science Fiction"


@responses.activate
def test_search_sends_url_encoded_query(client):
    responses.add(responses.GET, f"{BASE}/api/search", json={"Movies": [MOVIES[0]], "Query": "star wars"}, status=200)

    view = client.search("star wars")

    assert "q=star+wars" in responses.calls[0].request.url
    assert view.movies[0].id == 1


@responses.activate
def test_search_with_no_hits(client):
    responses.add(responses.GET, f"{BASE}/api/search", json={"Movies": None, "Query": "zzz", "Hits": 0}, status=200)

    assert client.search("zzz").movies is None


@responses.activate
def test_progress_null_offsets_is_empty(client):
    responses.add(responses.GET, f"{BASE}/api/progress", json={"Offsets": None}, status=200)

    assert client.progress().offsets == []


@responses.activate
def test_not_found_propagates(client):
    responses.add(responses.GET, f"{BASE}/api/tv/episodes/5", status=404)

    with pytest.raises(NotFound):
        client.tv_episode(5)


@responses.activate
def test_unexpected_payload_is_invalid_response(client):
    responses.add(responses.GET, f"{BASE}/api/profiles/7", json={"Nope": True}, status=200)

    with pytest.raises(InvalidResponse):
        client.profile(7)


# --- PROGRESS PUSH ---
@responses.activate
def test_update_progress_returns_status_and_sends_batch(client):
    responses.add(responses.POST, f"{BASE}/api/progress", status=204)
    offsets = [
        Offset(etag="abc123", offset=125, duration=3600, date="2021-01-01T00:00:00Z"),
        Offset(etag="def456", offset=10, date="2021-01-01T00:00:05Z"),
    ]

    assert client.update_progress(offsets) == 204

    body = json.loads(responses.calls[0].request.body)
    assert body == {
        "Offsets": [
            {"ETag": "abc123", "Offset": 125, "Duration": 3600, "Date": "2021-01-01T00:00:00Z"},
            {"ETag": "def456", "Offset": 10, "Date": "2021-01-01T00:00:05Z"},
        ]
    }


@pytest.mark.parametrize("status", [400, 500, 503])
@responses.activate
def test_update_progress_failure_is_a_status_not_an_exception(client, status):
    responses.add(responses.POST, f"{BASE}/api/progress", status=status)

    assert client.update_progress([Offset(etag="e", offset=1, date="2021-01-01T00:00:00Z")]) == status
    assert len(responses.calls) == 1


@responses.activate
def test_update_progress_without_response_is_zero(client):
    # Nothing registered: the transport sees a connection failure.
    assert client.update_progress([Offset(etag="e", offset=1, date="2021-01-01T00:00:00Z")]) == 0


@responses.activate
def test_update_progress_unrecoverable_session_is_401(client):
    responses.add(responses.POST, f"{BASE}/api/progress", status=401)
    responses.add(responses.GET, f"{BASE}/api/token", status=401)

    assert client.update_progress([Offset(etag="e", offset=1, date="2021-01-01T00:00:00Z")]) == 401
    assert client.session.credentials is None
