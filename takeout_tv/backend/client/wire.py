"""Wire-format models for the TakeoutFM video API.

Field names follow the server's JSON (``PascalCase`` aliases); unknown keys
are ignored so newer servers keep working.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Movie(WireModel):
    id: int = Field(alias="ID")
    tmid: Optional[int] = Field(default=None, alias="TMID")
    imid: str = Field(default="", alias="IMID")
    title: str = Field(alias="Title")
    sort_title: str = Field(default="", alias="SortTitle")
    date: str = Field(default="", alias="Date")
    rating: str = Field(default="", alias="Rating")
    tagline: str = Field(default="", alias="Tagline")
    overview: str = Field(default="", alias="Overview")
    budget: Optional[str] = Field(default=None, alias="Budget")
    revenue: Optional[str] = Field(default=None, alias="Revenue")
    runtime: int = Field(default=0, alias="Runtime")
    vote_average: Optional[float] = Field(default=None, alias="VoteAverage")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")
    backdrop_path: str = Field(default="", alias="BackdropPath")
    poster_path: str = Field(default="", alias="PosterPath")
    etag: str = Field(default="", alias="ETag")


class TVSeries(WireModel):
    id: int = Field(alias="ID")
    tvid: int = Field(default=0, alias="TVID")
    name: str = Field(alias="Name")
    sort_name: str = Field(default="", alias="SortName")
    overview: str = Field(default="", alias="Overview")
    date: str = Field(default="", alias="Date")
    end_date: str = Field(default="", alias="EndDate")
    tagline: str = Field(default="", alias="Tagline")
    season_count: int = Field(default=0, alias="SeasonCount")
    episode_count: int = Field(default=0, alias="EpisodeCount")
    vote_average: Optional[float] = Field(default=None, alias="VoteAverage")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")
    poster_path: str = Field(default="", alias="PosterPath")
    backdrop_path: str = Field(default="", alias="BackdropPath")
    rating: str = Field(default="", alias="Rating")


class TVEpisode(WireModel):
    id: int = Field(alias="ID")
    tvid: int = Field(default=0, alias="TVID")
    name: str = Field(alias="Name")
    overview: str = Field(default="", alias="Overview")
    date: str = Field(default="", alias="Date")
    still_path: str = Field(default="", alias="StillPath")
    runtime: int = Field(default=0, alias="Runtime")
    season: int = Field(default=0, alias="Season")
    episode: int = Field(default=0, alias="Episode")
    vote_average: Optional[float] = Field(default=None, alias="VoteAverage")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")
    etag: str = Field(default="", alias="ETag")
    size: int = Field(default=0, alias="Size")


class Person(WireModel):
    id: int = Field(alias="ID")
    peid: int = Field(alias="PEID")
    name: str = Field(alias="Name")
    profile_path: Optional[str] = Field(default=None, alias="ProfilePath")
    bio: Optional[str] = Field(default=None, alias="Bio")
    birthplace: Optional[str] = Field(default=None, alias="Birthplace")
    birthday: Optional[str] = Field(default=None, alias="Birthday")
    deathday: Optional[str] = Field(default=None, alias="Deathday")


class Cast(WireModel):
    id: int = Field(alias="ID")
    tmid: Optional[int] = Field(default=None, alias="TMID")
    tvid: Optional[int] = Field(default=None, alias="TVID")
    eid: Optional[int] = Field(default=None, alias="EID")
    peid: int = Field(alias="PEID")
    character: str = Field(default="", alias="Character")
    person: Person = Field(alias="Person")


class Crew(WireModel):
    id: int = Field(alias="ID")
    tmid: Optional[int] = Field(default=None, alias="TMID")
    tvid: Optional[int] = Field(default=None, alias="TVID")
    eid: Optional[int] = Field(default=None, alias="EID")
    peid: int = Field(alias="PEID")
    department: str = Field(default="", alias="Department")
    job: str = Field(default="", alias="Job")
    person: Person = Field(alias="Person")


class Collection(WireModel):
    id: int = Field(alias="ID")
    name: str = Field(alias="Name")
    sort_name: str = Field(default="", alias="SortName")
    tmid: Optional[str] = Field(default=None, alias="TMID")


class Recommend(WireModel):
    name: str = Field(alias="Name")
    movies: List[Movie] = Field(default_factory=list, alias="Movies")


class HomeView(WireModel):
    added_movies: List[Movie] = Field(default_factory=list, alias="AddedMovies")
    new_movies: List[Movie] = Field(default_factory=list, alias="NewMovies")
    recommend_movies: Optional[List[Recommend]] = Field(default=None, alias="RecommendMovies")
    added_tv_episodes: Optional[List[TVEpisode]] = Field(default=None, alias="AddedTVEpisodes")


class MoviesView(WireModel):
    movies: List[Movie] = Field(default_factory=list, alias="Movies")


class MovieView(WireModel):
    movie: Movie = Field(alias="Movie")
    location: str = Field(default="", alias="Location")
    collection: Optional[Collection] = Field(default=None, alias="Collection")
    other: Optional[List[Movie]] = Field(default=None, alias="Other")
    cast: Optional[List[Cast]] = Field(default=None, alias="Cast")
    crew: Optional[List[Crew]] = Field(default=None, alias="Crew")
    starring: Optional[List[Person]] = Field(default=None, alias="Starring")
    directing: Optional[List[Person]] = Field(default=None, alias="Directing")
    writing: Optional[List[Person]] = Field(default=None, alias="Writing")
    genres: Optional[List[str]] = Field(default=None, alias="Genres")
    vote: Optional[int] = Field(default=None, alias="Vote")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")


class GenreView(WireModel):
    name: str = Field(alias="Name")
    movies: List[Movie] = Field(default_factory=list, alias="Movies")


class TVListView(WireModel):
    series: List[TVSeries] = Field(default_factory=list, alias="Series")
    episodes: List[TVEpisode] = Field(default_factory=list, alias="Episodes")


class TVShowsView(WireModel):
    series: List[TVSeries] = Field(default_factory=list, alias="Series")


class TVSeriesView(WireModel):
    series: TVSeries = Field(alias="Series")
    episodes: List[TVEpisode] = Field(default_factory=list, alias="Episodes")
    cast: Optional[List[Cast]] = Field(default=None, alias="Cast")
    crew: Optional[List[Crew]] = Field(default=None, alias="Crew")
    starring: Optional[List[Person]] = Field(default=None, alias="Starring")
    directing: Optional[List[Person]] = Field(default=None, alias="Directing")
    writing: Optional[List[Person]] = Field(default=None, alias="Writing")
    genres: List[str] = Field(default_factory=list, alias="Genres")
    vote: Optional[int] = Field(default=None, alias="Vote")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")


class TVEpisodeView(WireModel):
    series: TVSeries = Field(alias="Series")
    episode: TVEpisode = Field(alias="Episode")
    location: str = Field(default="", alias="Location")
    cast: Optional[List[Cast]] = Field(default=None, alias="Cast")
    crew: Optional[List[Crew]] = Field(default=None, alias="Crew")
    starring: Optional[List[Person]] = Field(default=None, alias="Starring")
    directing: Optional[List[Person]] = Field(default=None, alias="Directing")
    writing: Optional[List[Person]] = Field(default=None, alias="Writing")
    vote: Optional[int] = Field(default=None, alias="Vote")
    vote_count: Optional[int] = Field(default=None, alias="VoteCount")


class MovieCredits(WireModel):
    starring: Optional[List[Movie]] = Field(default=None, alias="Starring")
    directing: Optional[List[Movie]] = Field(default=None, alias="Directing")
    writing: Optional[List[Movie]] = Field(default=None, alias="Writing")


class TVCredits(WireModel):
    starring: Optional[List[TVSeries]] = Field(default=None, alias="Starring")
    directing: Optional[List[TVSeries]] = Field(default=None, alias="Directing")
    writing: Optional[List[TVSeries]] = Field(default=None, alias="Writing")


class ProfileView(WireModel):
    person: Person = Field(alias="Person")
    movies: MovieCredits = Field(default_factory=MovieCredits, alias="Movies")
    shows: TVCredits = Field(default_factory=TVCredits, alias="Shows")


class SearchView(WireModel):
    movies: Optional[List[Movie]] = Field(default=None, alias="Movies")
    query: str = Field(default="", alias="Query")
    hits: Optional[int] = Field(default=None, alias="Hits")


class Offset(WireModel):
    """Remote progress for one piece of content, keyed by etag."""

    id: Optional[int] = Field(default=None, alias="ID")
    etag: str = Field(alias="ETag")
    duration: Optional[int] = Field(default=None, alias="Duration")
    offset: int = Field(alias="Offset")
    date: str = Field(alias="Date")


class Offsets(WireModel):
    offsets: List[Offset] = Field(default_factory=list, alias="Offsets")


class ProgressView(WireModel):
    offsets: List[Offset] = Field(default_factory=list, alias="Offsets")

    @field_validator("offsets", mode="before")
    @classmethod
    def _null_offsets(cls, value):
        return [] if value is None else value
