import pytest
import responses

from takeout_tv.backend.auth.credentials import Credentials, MemoryCredentialStore, UserInfo
from takeout_tv.backend.auth.session_manager import SessionManager
from takeout_tv.backend.auth.user_manager import UserManager
from takeout_tv.backend.network_handlers.session import HttpSession
from takeout_tv.backend.progress.store import WatchProgressStore
from takeout_tv.backend.repository.content_repository import ContentRepository

BASE = "https://takeout.test"
CREDS = Credentials(access_token="access-1", media_token="media-1", refresh_token="refresh-1")


def make_transport():
    # Single attempt so failures surface without backoff sleeps.
    return HttpSession(BASE, retry={"max_attempts": 1}, user_agent="takeout-tv-tests/1.0")


def session_factory(endpoint, credentials):
    return SessionManager(endpoint, credentials=credentials, transport=make_transport())


# --- WIRE PAYLOAD BUILDERS ---
def movie(mid, title, etag, **extra):
    payload = {
        "ID": mid,
        "Title": title,
        "SortTitle": title,
        "Date": "1979-05-25T00:00:00Z",
        "Rating": "R",
        "Tagline": "",
        "Overview": f"About {title}",
        "Runtime": 117,
        "VoteAverage": 8.4,
        "PosterPath": f"/poster-{mid}.jpg",
        "BackdropPath": f"/backdrop-{mid}.jpg",
        "ETag": f'"{etag}"',
    }
    payload.update(extra)
    return payload


def series(sid, tvid, name, **extra):
    payload = {
        "ID": sid,
        "TVID": tvid,
        "Name": name,
        "SortName": name,
        "Date": "2008-01-20",
        "Tagline": f"{name} tagline",
        "SeasonCount": 1,
        "EpisodeCount": 2,
        "VoteAverage": 9.0,
        "PosterPath": f"/series-{sid}.jpg",
        "BackdropPath": f"/series-backdrop-{sid}.jpg",
        "Rating": "TV-MA",
    }
    payload.update(extra)
    return payload


def episode(eid, tvid, name, etag, season=1, number=1):
    return {
        "ID": eid,
        "TVID": tvid,
        "Name": name,
        "Date": "2008-01-20",
        "StillPath": f"/still-{eid}.jpg",
        "Runtime": 47,
        "Season": season,
        "Episode": number,
        "VoteAverage": 8.0,
        "ETag": f'"{etag}"',
    }


MOVIES = [
    movie(1, "Alien", "etag-alien"),
    movie(2, "1984", "etag-1984"),
    movie(3, "Aliens", "etag-aliens"),
]
SERIES = [series(10, 1396, "Breaking Bad"), series(11, 1399, "Game of Thrones")]
EPISODES = [
    episode(101, 1396, "Pilot", "etag-bb-1", 1, 1),
    episode(201, 1399, "Winter Is Coming", "etag-got-1", 1, 1),
    episode(102, 1396, "Cat's in the Bag...", "etag-bb-2", 1, 2),
]
HOME = {
    "AddedMovies": [MOVIES[2]],
    "NewMovies": [MOVIES[0]],
    "RecommendMovies": [
        {"Name": "Sci-Fi Picks", "Movies": [MOVIES[0], movie(99, "Not Here", "etag-missing")]},
    ],
    "AddedTVEpisodes": None,
}


def register_catalog(offsets=None, movies_status=200):
    """Register the four endpoints a catalog load touches."""

    if movies_status == 200:
        responses.add(responses.GET, f"{BASE}/api/movies", json={"Movies": MOVIES}, status=200)
    else:
        responses.add(responses.GET, f"{BASE}/api/movies", status=movies_status)
    responses.add(responses.GET, f"{BASE}/api/tv", json={"Series": SERIES, "Episodes": EPISODES}, status=200)
    responses.add(responses.GET, f"{BASE}/api/home", json=HOME, status=200)
    responses.add(responses.GET, f"{BASE}/api/progress", json={"Offsets": offsets}, status=200)


# --- FIXTURES ---
@pytest.fixture
def session():
    return SessionManager(BASE, credentials=CREDS, transport=make_transport())


@pytest.fixture
def credential_store():
    return MemoryCredentialStore(UserInfo.from_credentials(CREDS, endpoint=BASE, display_name="tester"))


@pytest.fixture
def users(credential_store):
    return UserManager(credential_store, session_factory=session_factory)


@pytest.fixture
def repository(users):
    return ContentRepository(users)


@pytest.fixture
def store(tmp_path):
    return WatchProgressStore(tmp_path / "takeout.db")
