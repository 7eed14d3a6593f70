import pytest
from pydantic import ValidationError

from takeout_tv.backend.client import wire
from takeout_tv.backend.network_handlers.url_manager import URLManager
from takeout_tv.backend.repository.mapping import (
    VideoMapper,
    category,
    etag_key,
    iso8601,
    vote,
    year,
)
from takeout_tv.backend.repository.models import Video, VideoType

from conftest import BASE, EPISODES, MOVIES, SERIES


@pytest.fixture
def mapper():
    return VideoMapper(URLManager(BASE))


# --- CATEGORY BUCKETING ---
@pytest.mark.parametrize(
    "title, expected",
    [
        ("7th Son", "#"),
        ("1984", "#"),
        ("Alien", "A"),
        ("alien", "A"),
        ("étude", "É"),
        ("", "#"),
    ],
)
def test_category(title, expected):
    assert category(title) == expected


def test_distinct_leading_digits_share_one_bucket():
    assert category("2001: A Space Odyssey") == category("9 to 5") == "#"


# --- SCALAR RULES ---
@pytest.mark.parametrize("minutes, expected", [(0, "PT00H00M"), (45, "PT00H45M"), (125, "PT02H05M")])
def test_iso8601_duration(minutes, expected):
    assert iso8601(minutes) == expected


@pytest.mark.parametrize(
    "value, expected",
    [("1979-05-25T00:00:00Z", 1979), ("2008-01-20", 2008), ("", -1), (None, -1), ("someday", -1)],
)
def test_year(value, expected):
    assert year(value) == expected


def test_vote_and_etag_key():
    assert vote(8.4) == 84
    assert vote(None) == 0
    assert etag_key('"abc123"') == "abc123"


# --- ENTITY MAPPING ---
def test_movie_mapping(mapper):
    video = mapper.movie(wire.Movie.model_validate(MOVIES[1]))

    assert video.id == "takeout://movies/2"
    assert video.category == "#"
    assert video.video_type is VideoType.MOVIE
    assert video.episode is None
    assert video.year == 1979
    assert video.duration == "PT01H57M"
    assert video.vote == 84
    assert video.etag == "etag-1984"
    assert video.thumbnail_uri == f"{BASE}/img/tm/w342/poster-2.jpg"
    assert video.background_image_uri == f"{BASE}/img/tm/w1280/backdrop-2.jpg"


def test_episode_mapping_borrows_series_fields(mapper):
    show = wire.TVSeries.model_validate(SERIES[0])
    video = mapper.episode(show, wire.TVEpisode.model_validate(EPISODES[2]))

    assert video.id == "takeout://tv/episodes/102"
    assert video.video_type is VideoType.EPISODE
    assert video.category == "B"
    assert video.rating == "TV-MA"
    assert video.tagline == "Breaking Bad tagline"
    assert video.thumbnail_uri == f"{BASE}/img/tm/w300/still-102.jpg"
    assert video.background_image_uri == f"{BASE}/img/tm/w1280/series-backdrop-10.jpg"
    assert video.series_uri == "takeout://tv/series/10"
    assert video.episode.season_uri == "takeout://tv/series/10/season/1"
    assert (video.season_number, video.episode_number) == (1, 2)


def test_movie_detail_uses_location_and_media_headers(mapper):
    view = wire.MovieView.model_validate(
        {
            "Movie": MOVIES[0],
            "Location": "/api/movies/1/location",
            "Genres": ["Horror", "Science Fiction"],
            "Cast": [
                {
                    "ID": 5,
                    "PEID": 7,
                    "Character": "Ripley",
                    "Person": {"ID": 1, "PEID": 7, "Name": "Sigourney Weaver", "ProfilePath": "/sw.jpg"},
                }
            ],
            "Other": [MOVIES[2]],
        }
    )

    detail = mapper.movie_detail(view, {"Authorization": "Bearer media-1"})

    assert detail.id == "takeout://movies/1/detail"
    assert detail.uri == f"{BASE}/api/movies/1/location"
    assert detail.video.video_uri == detail.uri
    assert detail.headers == {"Authorization": "Bearer media-1"}
    assert list(detail.genres) == ["Horror", "Science Fiction"]
    assert detail.cast[0].id == "takeout://cast/5"
    assert detail.cast[0].person.id == "takeout://people/7"
    assert detail.cast[0].person.thumbnail_uri == f"{BASE}/img/tm/w185/sw.jpg"
    assert [v.name for v in detail.related] == ["Aliens"]


def test_episode_detail_has_no_genres_or_related(mapper):
    view = wire.TVEpisodeView.model_validate(
        {"Series": SERIES[0], "Episode": EPISODES[0], "Location": "/api/tv/episodes/101/location"}
    )

    detail = mapper.episode_detail(view, {})

    assert detail.id == "takeout://tv/episodes/101/detail"
    assert list(detail.genres) == []
    assert list(detail.related) == []


# --- DOMAIN INVARIANTS ---
def test_episode_payload_required_for_episodes_only():
    base = dict(id="x", name="x", uri="x", category="X", etag="x")

    with pytest.raises(ValidationError):
        Video(video_type=VideoType.EPISODE, **base)


def test_duration_ms():
    video = Video(id="x", name="x", uri="x", category="X", etag="x", video_type=VideoType.MOVIE, duration="PT01H30M")

    assert video.duration_ms() == 5_400_000
