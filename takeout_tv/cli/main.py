"""Command line client for a TakeoutFM server."""

from __future__ import annotations

import argparse
import getpass
import time
from typing import Any, Optional, Sequence, get_args

from takeout_tv.backend.common.errors import TakeoutError
from takeout_tv.backend.common.logging import get_logger, init_logging
from takeout_tv.backend.common.types import LogLevel
from takeout_tv.backend.context import AppContext
from takeout_tv.config.settings import get_settings, update_endpoint

from ._utils import build_subparser, exit_with_error, print_json, require_subcommand

log = get_logger("takeout_tv.cli")


def _require_signed_in(ctx: AppContext) -> None:
    if not ctx.users.is_signed_in():
        exit_with_error("Not signed in; run 'takeout-tv login' first.", code=2)


def _endpoint(ctx: AppContext, args: argparse.Namespace) -> str:
    endpoint = args.endpoint or ctx.settings.endpoint
    if not endpoint:
        exit_with_error("No server endpoint; pass --endpoint or set TAKEOUT_ENDPOINT.", code=2)
    return endpoint


def _summary(video: Any) -> dict:
    return {
        "id": video.id,
        "name": video.name,
        "category": video.category,
        "year": video.year,
        "type": video.video_type.value,
        "etag": video.etag,
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _handle_login(ctx: AppContext, args: argparse.Namespace) -> None:
    endpoint = _endpoint(ctx, args)
    if args.code:
        code = ctx.users.request_code(endpoint)
        if code is None:
            exit_with_error("Server did not issue an access code.")
        print(f"Approve code {code.code} on {endpoint}/link")
        deadline = time.monotonic() + args.wait
        info = None
        while info is None and time.monotonic() < deadline:
            time.sleep(args.poll)
            info = ctx.users.sign_in_with_code(endpoint, code)
        if info is None:
            exit_with_error("Access code was not approved in time.")
    else:
        user = args.user or input("User: ")
        password = args.password or getpass.getpass("Password: ")
        ctx.users.sign_in(endpoint, user, password)

    update_endpoint(endpoint)
    print_json({"signed_in": True, "endpoint": endpoint})


def _handle_logout(ctx: AppContext, args: argparse.Namespace) -> None:
    ctx.users.sign_out()
    if args.forget_progress:
        ctx.store.delete_all()
    print_json({"signed_in": False})


def _handle_whoami(ctx: AppContext, args: argparse.Namespace) -> None:
    info = ctx.users.user_info
    print_json(
        {
            "signed_in": ctx.users.is_signed_in(),
            "endpoint": info.endpoint if info else None,
            "display_name": info.display_name if info else None,
        }
    )


def _handle_health(ctx: AppContext, args: argparse.Namespace) -> None:
    print_json(ctx.health())


def _handle_home(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    groups = ctx.repository.get_browse_groups(refresh=args.refresh) if args.browse else ctx.repository.get_home_groups()
    print_json([{"category": g.category, "videos": [_summary(v) for v in g.videos]} for g in groups])


def _handle_movies(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    if args.genre:
        videos = ctx.repository.get_genre(args.genre)
    else:
        videos = ctx.repository.get_all_videos(refresh=args.refresh)
    if args.letter:
        videos = [v for v in videos if v.category == args.letter.upper()]
    print_json([_summary(v) for v in videos])


def _handle_series(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    if args.series_id:
        series = ctx.repository.get_series_by_id(args.series_id) or ctx.repository.get_series_detail(args.series_id)
        if series is None:
            exit_with_error(f"Unknown series {args.series_id}")
        print_json(
            {
                "id": series.id,
                "name": series.name,
                "episodes": [
                    dict(_summary(e), season=e.season_number, episode=e.episode_number) for e in series.episodes
                ],
            }
        )
        return
    print_json(
        [
            {"id": s.id, "name": s.name, "year": s.year, "seasons": s.season_count, "episodes": s.episode_count}
            for s in ctx.repository.get_all_series(refresh=args.refresh)
        ]
    )


def _handle_search(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    print_json([_summary(v) for v in ctx.repository.search(" ".join(args.query))])


def _handle_detail(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    detail = ctx.repository.get_video_detail(args.video_id)
    if detail is None:
        exit_with_error(f"No detail available for {args.video_id}")
    payload = detail.model_dump(mode="json")
    if not args.show_headers:
        payload["headers"] = {k: "***" for k in payload["headers"]}
    print_json(payload)


def _handle_profile(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    profile = ctx.repository.get_profile(args.person_id)
    if profile is None:
        exit_with_error(f"No profile available for {args.person_id}")
    print_json(
        {
            "id": profile.id,
            "person": profile.person,
            "videos": [_summary(v) for v in profile.videos],
            "series": [{"id": s.id, "name": s.name} for s in profile.series],
        }
    )


def _handle_progress(ctx: AppContext, args: argparse.Namespace) -> None:
    if args.remote:
        _require_signed_in(ctx)
        print_json(ctx.reconciler.get_progress())
        return
    print_json(ctx.store.recent(args.limit))


def _handle_sync(ctx: AppContext, args: argparse.Namespace) -> None:
    _require_signed_in(ctx)
    print_json(ctx.reconciler.sync())


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="takeout-tv", description="Browse and sync a TakeoutFM video library.")
    parser.add_argument("--log-level", choices=list(get_args(LogLevel)), help="Override the configured log level.")
    parser.add_argument("--plain-logs", action="store_true", help="Human readable log lines instead of JSON.")
    subparsers = parser.add_subparsers(dest="command")
    require_subcommand(subparsers)

    login = build_subparser(subparsers, "login", help="Sign in and store credentials.")
    login.add_argument("--endpoint", help="Server URL, e.g. https://takeout.example.com")
    login.add_argument("--user", help="User name; prompted when omitted.")
    login.add_argument("--password", help="Password; prompted when omitted.")
    login.add_argument("--code", action="store_true", help="Sign in by approving an access code on another device.")
    login.add_argument("--wait", type=float, default=300.0, help="Seconds to wait for code approval.")
    login.add_argument("--poll", type=float, default=5.0, help="Seconds between code approval checks.")
    login.set_defaults(func=_handle_login)

    logout = build_subparser(subparsers, "logout", help="Forget stored credentials.")
    logout.add_argument("--forget-progress", action="store_true", help="Also delete local watch progress.")
    logout.set_defaults(func=_handle_logout)

    build_subparser(subparsers, "whoami", help="Show the signed-in server.").set_defaults(func=_handle_whoami)
    build_subparser(subparsers, "health", help="Report component status.").set_defaults(func=_handle_health)

    home = build_subparser(subparsers, "home", help="Show the home shelves.")
    home.add_argument("--browse", action="store_true", help="Append one group per category of the movie catalog.")
    home.add_argument("--refresh", action="store_true", help="Reload the catalog first.")
    home.set_defaults(func=_handle_home)

    movies = build_subparser(subparsers, "movies", help="List movies.")
    movies.add_argument("--letter", help="Only titles in this browse category ('#' for digits).")
    movies.add_argument("--genre", help="List a genre fetched from the server instead.")
    movies.add_argument("--refresh", action="store_true", help="Reload the catalog first.")
    movies.set_defaults(func=_handle_movies)

    series = build_subparser(subparsers, "series", help="List TV series or one series' episodes.")
    series.add_argument("series_id", nargs="?", help="Series id, e.g. takeout://tv/series/7")
    series.add_argument("--refresh", action="store_true", help="Reload the catalog first.")
    series.set_defaults(func=_handle_series)

    search = build_subparser(subparsers, "search", help="Search the server.")
    search.add_argument("query", nargs="+", help="Free text query.")
    search.set_defaults(func=_handle_search)

    detail = build_subparser(subparsers, "detail", help="Show playable detail for a video.")
    detail.add_argument("video_id", help="Video id, e.g. takeout://movies/42")
    detail.add_argument("--show-headers", action="store_true", help="Print the media authorization headers.")
    detail.set_defaults(func=_handle_detail)

    profile = build_subparser(subparsers, "profile", help="Show a person and their titles in the catalog.")
    profile.add_argument("person_id", help="Person id, e.g. takeout://people/12")
    profile.set_defaults(func=_handle_profile)

    progress = build_subparser(subparsers, "progress", help="Show watch progress.")
    progress.add_argument("--remote", action="store_true", help="Fetch the server's progress instead of local rows.")
    progress.add_argument("--limit", type=int, help="Maximum local rows to show.")
    progress.set_defaults(func=_handle_progress)

    build_subparser(subparsers, "sync", help="Push pending progress and pull the server's.").set_defaults(func=_handle_sync)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    init_logging(args.log_level or settings.log_level, json_output=not args.plain_logs)

    ctx = AppContext.create(settings)
    try:
        args.func(ctx, args)
    except TakeoutError as exc:
        log.debug("command %s failed", args.command, exc_info=True)
        exit_with_error(str(exc) or exc.__class__.__name__)
    finally:
        ctx.close()


if __name__ == "__main__":  # pragma: no cover
    main()
