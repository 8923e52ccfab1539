from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import uvicorn

from postcache.adapters.placeholder_client import UpstreamError
from postcache.cli.state import CliState, load_state, save_state
from postcache.config import get_config, reload_settings, settings
from postcache.domain.enums import Environment
from postcache.domain.filters import PostFilters, parse_filter_date
from postcache.domain.models import CachedPost, Post, PostWithRelations
from postcache.logging_utils import LogSetup, configure_logging
from postcache.services.refresh_service import (
    RefreshCoordinator,
    RefreshInProgressError,
    build_coordinator,
)

_TRUE_VALUES = {"on", "true", "yes", "1"}
_FALSE_VALUES = {"off", "false", "no", "0"}


@dataclass(frozen=True)
class Exit:
    code: int = 0


@dataclass(frozen=True)
class Context:
    environment: Environment
    with_relations: bool
    state: CliState


def _env_arg(raw: str) -> Environment:
    env = Environment.parse(raw)
    if env is None:
        raise argparse.ArgumentTypeError(f"unknown environment {raw!r} (use dev, stage or prod)")
    return env


def _print_post(post: CachedPost) -> None:
    print(f"Post #{post.id} (user {post.user_id})")
    print(f"Title: {post.title}")
    print(f"Body: {post.body}")
    if post.fetch_date:
        print(f"Fetched: {post.fetch_date}")
    if isinstance(post, PostWithRelations):
        if post.user is not None:
            print(f"Author: {post.user.name} <{post.user.email}>")
        comments = post.comments or []
        print(f"Comments ({len(comments)}):")
        for comment in comments:
            print(f"  - {comment.name} <{comment.email}>: {comment.body}")


def _print_summary(posts: Sequence[Post]) -> None:
    for post in posts:
        print(f"- [{post.id}] {post.title}")


########################################
# Commands
########################################


def cmd_posts(coordinator: RefreshCoordinator, post_id: Optional[int]) -> Exit:
    store = coordinator.store
    if post_id is not None:
        post = store.read_one(post_id)
        if post is None:
            print(f"[ERROR] No saved post with id {post_id}")
            return Exit(1)
        _print_post(post)
        return Exit(0)

    files = store.list_files()
    if not files:
        print(f"[INFO] No JSON files in {store.directory}")
        return Exit(0)
    print(f"JSON files in {store.directory} ({len(files)}):")
    for path in files:
        print(path.resolve())
    return Exit(0)


def cmd_save(coordinator: RefreshCoordinator, post_id: int, with_relations: bool) -> Exit:
    result = coordinator.save_post(post_id, with_relations=with_relations)
    if not result.success:
        print(f"[ERROR] Could not save post {post_id}")
        return Exit(1)
    print(f"[OK] Saved post {post_id} to {result.file_path}")
    return Exit(0)


def cmd_save_all(coordinator: RefreshCoordinator, with_relations: bool) -> Exit:
    result = coordinator.save_all(with_relations=with_relations)
    suffix = " with relations" if with_relations else ""
    print(f"[OK] Saved {result.saved_posts} of {result.total_posts} posts{suffix}")
    print(f"[OK] Directory: {result.directory}")
    return Exit(0 if result.saved_posts == result.total_posts else 1)


def cmd_saved_posts(coordinator: RefreshCoordinator) -> Exit:
    posts = coordinator.store.read_all()
    if not posts:
        print("[INFO] No saved posts")
        return Exit(0)
    print(f"Saved posts ({len(posts)}):")
    _print_summary(posts)
    return Exit(0)


def cmd_get(coordinator: RefreshCoordinator, post_id: int, with_relations: bool) -> Exit:
    _print_post(coordinator.get_post(post_id, with_relations=with_relations))
    return Exit(0)


def cmd_fetch(
    coordinator: RefreshCoordinator, post_id: Optional[int], with_relations: bool
) -> Exit:
    if post_id is not None:
        post = coordinator.get_post(post_id, force_refresh=True, with_relations=with_relations)
        _print_post(post)
        return Exit(0)
    result = coordinator.get_posts(force_refresh=True)
    print(f"Fetched {len(result.posts)} posts:")
    _print_summary(result.posts)
    return Exit(0)


def cmd_delete(coordinator: RefreshCoordinator, post_id: int) -> Exit:
    if not coordinator.delete_post(post_id):
        print(f"[ERROR] No saved post with id {post_id}")
        return Exit(1)
    print(f"[OK] Deleted post {post_id}")
    return Exit(0)


def cmd_clear(coordinator: RefreshCoordinator) -> Exit:
    result = coordinator.clear_cache()
    if not result.success:
        print(f"[ERROR] {result.message}")
        return Exit(1)
    print(f"[OK] Removed {result.files_removed} files from {result.directory}")
    return Exit(0)


def cmd_quick_refresh(coordinator: RefreshCoordinator, with_relations: bool) -> Exit:
    result = coordinator.quick_refresh(with_relations=with_relations)
    if not result.total_added:
        print(f"[OK] No new posts ({result.total_checked} checked)")
        return Exit(0)
    print(f"[OK] Added {result.total_added} new posts ({result.total_checked} checked)")
    _print_summary(result.posts)
    return Exit(0)


def cmd_hard_refresh(coordinator: RefreshCoordinator, with_relations: bool) -> Exit:
    result = coordinator.hard_refresh(with_relations=with_relations)
    print(f"[OK] Refreshed {result.total_refreshed} of {result.total_fetched} posts")
    return Exit(0 if result.total_refreshed == result.total_fetched else 1)


def cmd_filter(coordinator: RefreshCoordinator, filters: PostFilters) -> Exit:
    if filters.is_empty():
        print("[ERROR] Give at least one filter: --min-id, --max-id, --title, --body, --date-after")
        return Exit(2)
    if filters.fetch_date_after:
        try:
            parse_filter_date(filters.fetch_date_after)
        except ValueError:
            # Solo se desactiva el filtro de fecha; el resto sigue aplicando.
            print("[WARN] Ignoring --date-after, expected YYYY-MM-DDTHH:MM:SS")
    result = coordinator.get_posts(filters=filters)
    print(f"Found {len(result.posts)} matching posts:")
    _print_summary(result.posts)
    return Exit(0)


def cmd_export_zip(coordinator: RefreshCoordinator, post_ids: List[int]) -> Exit:
    zip_path = coordinator.build_archive(post_ids or None)
    if zip_path is None:
        print("[ERROR] Could not create the ZIP file: no posts to export")
        return Exit(1)
    print(f"[OK] Created {zip_path}")
    return Exit(0)


def cmd_toggle_relations(ctx: Context, value: Optional[str]) -> Exit:
    if value is None:
        enabled = not ctx.state.with_relations
    elif value.lower() in _TRUE_VALUES:
        enabled = True
    elif value.lower() in _FALSE_VALUES:
        enabled = False
    else:
        print("[ERROR] Invalid value. Use on/off, true/false, yes/no, 1/0")
        return Exit(2)
    save_state(ctx.state.model_copy(update={"with_relations": enabled}))
    print(f"[OK] Fetch with relations: {'ON' if enabled else 'OFF'}")
    return Exit(0)


def cmd_env(ctx: Context, raw: Optional[str]) -> Exit:
    if raw is None:
        print(f"Current environment: {ctx.environment.value}")
        return Exit(0)
    env = Environment.parse(raw)
    if env is None:
        print("[ERROR] Invalid environment. Options: dev, stage, prod")
        return Exit(2)
    save_state(ctx.state.model_copy(update={"environment": env}))
    print(f"[OK] Environment changed to: {env.value}")
    return Exit(0)


def _describe_refresh(exc: RefreshInProgressError) -> str:
    state = exc.state
    kind = state.refresh_type.value if state.refresh_type else "unknown"
    if state.refresh_start_time is None:
        return f"type={kind}"
    started = datetime.fromtimestamp(state.refresh_start_time / 1000).astimezone()
    return f"type={kind} started={started.isoformat(timespec='seconds')} ({state.refresh_start_time})"


def cmd_serve(env: Environment, host: str, port: int) -> Exit:
    # El proceso servidor lee APP_ENV al importar la app.
    os.environ["APP_ENV"] = env.value
    reload_settings()
    started = datetime.now().astimezone()
    print(f"[INFO] {settings.app_name} ({env.value}) - {started.isoformat()}")
    uvicorn.run("postcache.api.main:app", host=host, port=port)
    return Exit(0)


########################################
# Parser
########################################


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="postcache", description="JSONPlaceholder post cache CLI")
    p.add_argument("--env", type=_env_arg, default=None, help="dev, stage or prod")
    rel = p.add_mutually_exclusive_group()
    rel.add_argument("--with-relations", dest="with_relations", action="store_true", default=None)
    rel.add_argument("--without-relations", dest="with_relations", action="store_false")
    p.set_defaults(with_relations=None)
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("posts", help="List cache files, or show one saved post")
    sp.add_argument("id", type=int, nargs="?")

    sp = sub.add_parser("save", help="Fetch one post and save it")
    sp.add_argument("id", type=int)

    sub.add_parser("save-all", help="Fetch every post and save it")
    sub.add_parser("save-all-with-relations", help="Save every post with user and comments")
    sub.add_parser("saved-posts", help="List saved posts")

    sp = sub.add_parser("get", help="Show a post (cache first)")
    sp.add_argument("id", type=int)

    sp = sub.add_parser("fetch", help="Fetch posts from the API, bypassing the cache")
    sp.add_argument("id", type=int, nargs="?")

    sp = sub.add_parser("delete", help="Delete one saved post")
    sp.add_argument("id", type=int)

    sub.add_parser("clear", help="Delete every saved post")
    sub.add_parser("quick-refresh", help="Save only posts missing from the cache")
    sub.add_parser("hard-refresh", help="Clear the cache and fetch every post again")

    sp = sub.add_parser("filter", help="Filter saved posts")
    sp.add_argument("--min-id", type=int)
    sp.add_argument("--max-id", type=int)
    sp.add_argument("--title")
    sp.add_argument("--body")
    sp.add_argument("--date-after", help="YYYY-MM-DDTHH:MM:SS")

    sp = sub.add_parser("export-zip", help="Export saved posts to a ZIP file")
    sp.add_argument("ids", type=int, nargs="*")

    sp = sub.add_parser("toggle-relations", help="Switch fetching with relations on/off")
    sp.add_argument("value", nargs="?")

    sp = sub.add_parser("env", help="Show or change the environment")
    sp.add_argument("name", nargs="?")

    sp = sub.add_parser("serve", help="Serve FastAPI")
    sp.add_argument("--host", default=None)
    sp.add_argument("--port", type=int, default=None)

    return p


def _context(args: argparse.Namespace) -> Context:
    state = load_state()
    env = args.env or state.environment or settings.environment()
    with_relations = state.with_relations if args.with_relations is None else args.with_relations
    return Context(environment=env, with_relations=with_relations, state=state)


def dispatch(args: argparse.Namespace) -> Exit:
    ctx = _context(args)
    configure_logging(setup=LogSetup.for_environment(ctx.environment))
    if args.cmd == "toggle-relations":
        return cmd_toggle_relations(ctx, args.value)
    if args.cmd == "env":
        return cmd_env(ctx, args.name)
    if args.cmd == "serve":
        cfg = get_config(ctx.environment)
        return cmd_serve(
            ctx.environment, args.host or settings.server_host, args.port or cfg.server_port
        )

    coordinator = build_coordinator(ctx.environment)
    rel = ctx.with_relations
    try:
        if args.cmd == "posts":
            return cmd_posts(coordinator, args.id)
        if args.cmd == "save":
            return cmd_save(coordinator, args.id, rel)
        if args.cmd == "save-all":
            return cmd_save_all(coordinator, rel)
        if args.cmd == "save-all-with-relations":
            return cmd_save_all(coordinator, True)
        if args.cmd == "saved-posts":
            return cmd_saved_posts(coordinator)
        if args.cmd == "get":
            return cmd_get(coordinator, args.id, rel)
        if args.cmd == "fetch":
            return cmd_fetch(coordinator, args.id, rel)
        if args.cmd == "delete":
            return cmd_delete(coordinator, args.id)
        if args.cmd == "clear":
            return cmd_clear(coordinator)
        if args.cmd == "quick-refresh":
            return cmd_quick_refresh(coordinator, rel)
        if args.cmd == "hard-refresh":
            return cmd_hard_refresh(coordinator, rel)
        if args.cmd == "filter":
            filters = PostFilters(
                min_id=args.min_id,
                max_id=args.max_id,
                title_contains=args.title,
                body_contains=args.body,
                fetch_date_after=args.date_after,
            )
            return cmd_filter(coordinator, filters)
        if args.cmd == "export-zip":
            return cmd_export_zip(coordinator, args.ids)
    except UpstreamError as exc:
        print(f"[ERROR] {exc}")
        return Exit(1)
    except RefreshInProgressError as exc:
        print(f"[ERROR] {exc}: {_describe_refresh(exc)}")
        return Exit(1)
    finally:
        coordinator.close()
    return Exit(2)


def app(argv: Sequence[str] | None = None) -> None:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    raise SystemExit(dispatch(args).code)
