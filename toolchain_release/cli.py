from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .build import BuildError
from .cache import CacheError, DirectoryCacheStore, GitHubCachePurger
from .config import DEFAULT_CONFIG_FILE, ConfigError, ReleaseConfig, load_config
from .github import GitHubAPIError, GitHubClient, resolve_token
from .packaging import PackagingError, pack_toolchain
from .pipeline import PipelineError, ReleasePipeline
from .publish import PublishContext, PublishError, publish_release, render_release_body
from .release_info import resolve_release_metadata
from .secrets import use_dotenv
from .trigger import match_trigger

DOMAIN_ERRORS = (
    BuildError,
    CacheError,
    ConfigError,
    GitHubAPIError,
    PackagingError,
    PipelineError,
    PublishError,
)


def _load_local_env(workspace_root: Path) -> None:
    """Best-effort load of a workspace-local .env for tokens and repo coordinates."""

    env_file = workspace_root / ".env"
    use_dotenv(env_file)
    if env_file.exists():
        load_dotenv(env_file, override=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load(args: argparse.Namespace) -> ReleaseConfig:
    workspace = Path(args.workspace_root).resolve()
    if args.config:
        config = load_config(_resolve(workspace, args.config))
    else:
        default_path = workspace / DEFAULT_CONFIG_FILE
        config = load_config(default_path if default_path.exists() else None)
    if getattr(args, "repo", None):
        config = config.model_copy(update={"release": config.release.model_copy(update={"repo": args.repo})})
    return config


def _client(config: ReleaseConfig, *, required: bool = False) -> GitHubClient:
    token = resolve_token(config.release.token_env, required=required)
    return GitHubClient(token=token, api_url=config.release.api_url)


def _require_repo(config: ReleaseConfig) -> str:
    if not config.release.repo:
        raise ConfigError("Repository not configured; pass --repo or set GITHUB_REPOSITORY.")
    return config.release.repo


def _print(payload: object) -> None:
    print(json.dumps(payload, indent=2))


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workspace-root", default=".")
    parser.add_argument("--config")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolchain-release", description="Toolchain build and release pipeline")
    parser.add_argument("--verbose", "-v", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the full release pipeline for a pushed ref")
    _add_common(run)
    run.add_argument("--ref")
    run.add_argument("--repo")
    run.add_argument("--skip", action="append", default=[], help="Step name to skip (repeatable)")
    run.add_argument("--dry-run", action=argparse.BooleanOptionalAction, default=False)

    steps = subparsers.add_parser("steps", help="List pipeline steps in execution order")
    _add_common(steps)

    trigger = subparsers.add_parser("trigger", help="Check whether a ref starts a release")
    _add_common(trigger)
    trigger.add_argument("--ref", required=True)

    info = subparsers.add_parser("release-info", help="Resolve comparison link and prerelease flag")
    _add_common(info)
    info.add_argument("--tag", required=True)
    info.add_argument("--repo")

    pack = subparsers.add_parser("pack", help="Archive the toolchain directory and write its digest")
    _add_common(pack)
    pack.add_argument("--dist-dir")
    pack.add_argument("--dir", dest="directory")
    pack.add_argument("--destination")
    pack.add_argument("--level", type=int)
    pack.add_argument("--format", choices=["tar.xz", "7z"])

    publish = subparsers.add_parser("publish", help="Publish files to the release for a tag")
    _add_common(publish)
    publish.add_argument("--tag", required=True)
    publish.add_argument("--repo")
    publish.add_argument("--file", action="append", required=True)
    publish.add_argument("--comparison", default="")
    publish.add_argument("--prerelease", action=argparse.BooleanOptionalAction, default=False)
    publish.add_argument("--adapter", choices=["github", "noop"])
    publish.add_argument("--dry-run", action=argparse.BooleanOptionalAction, default=False)

    cache = subparsers.add_parser("cache", help="Build cache helpers")
    cache_subparsers = cache.add_subparsers(dest="cache_command", required=True)
    for name, help_text in (
        ("restore", "Restore the build directory from the cache"),
        ("save", "Save the build directory to the cache"),
        ("purge", "Purge cache entries older than the max age"),
    ):
        sub = cache_subparsers.add_parser(name, help=help_text)
        _add_common(sub)
        sub.add_argument("--key")
        if name == "purge":
            sub.add_argument("--max-age", type=int)
            sub.add_argument("--backend", choices=["directory", "github"])
            sub.add_argument("--repo")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    _load_local_env(Path(args.workspace_root).resolve())

    try:
        return _dispatch(args, parser)
    except DOMAIN_ERRORS as exc:
        print(str(exc), file=sys.stderr)
        return 2


def _dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = _load(args)
    workspace = Path(args.workspace_root).resolve()

    if args.command == "run":
        ref = args.ref or os.environ.get("GITHUB_REF")
        if not ref:
            print("No ref given; pass --ref or set GITHUB_REF.", file=sys.stderr)
            return 2
        pipeline = ReleasePipeline(config)
        result = pipeline.run(ref, workspace, dry_run=args.dry_run, skip=args.skip)
        _print(result.to_dict())
        return 1 if result.status == "failed" else 0

    if args.command == "steps":
        _print([step.to_dict() for step in ReleasePipeline(config).steps()])
        return 0

    if args.command == "trigger":
        tag = match_trigger(args.ref, config.trigger_patterns)
        _print({"ref": args.ref, "triggered": tag is not None, "tag": tag})
        return 0

    if args.command == "release-info":
        metadata = resolve_release_metadata(
            _client(config),
            repo=_require_repo(config),
            tag=args.tag,
            server_url=config.release.server_url,
            keywords=config.release.prerelease_keywords,
        )
        _print(metadata.to_dict())
        return 0

    if args.command == "pack":
        settings = config.pack
        fmt = args.format or settings.format
        directory = args.directory or settings.directory
        packed_file = settings.packed_file or f"{directory}.{fmt}"
        result = pack_toolchain(
            _resolve(workspace, args.dist_dir or config.build.dist_name),
            directory=directory,
            destination=_resolve(workspace, args.destination or "."),
            packed_file=packed_file,
            digest_file=settings.digest_file,
            level=settings.level if args.level is None else args.level,
            fmt=fmt,
        )
        _print(result.to_dict())
        return 0

    if args.command == "publish":
        adapter = args.adapter or config.release.adapter
        options: Dict[str, object] = {"token-env": config.release.token_env, "api-url": config.release.api_url}
        context = PublishContext(
            repo=_require_repo(config),
            tag=args.tag,
            files=[_resolve(workspace, entry) for entry in args.file],
            body=render_release_body(config.release.installation_url, args.comparison),
            prerelease=args.prerelease,
            append_body=config.release.append_body,
            dry_run=args.dry_run,
            adapter_name=adapter,
            adapter_options=options,
        )
        _print(publish_release(context).to_dict())
        return 0

    if args.command == "cache":
        return _run_cache(args, config, workspace)

    parser.error("Unknown command")
    return 1


def _resolve(workspace: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else workspace / path


def _run_cache(args: argparse.Namespace, config: ReleaseConfig, workspace: Path) -> int:
    settings = config.cache
    key = args.key or settings.key
    store = DirectoryCacheStore(_resolve(workspace, settings.store_dir))
    build_dir = workspace / settings.path

    if args.cache_command == "restore":
        _print(store.restore(key, build_dir).to_dict())
        return 0
    if args.cache_command == "save":
        _print(store.save(key, build_dir).model_dump(mode="json"))
        return 0

    max_age = settings.max_age_minutes if args.max_age is None else args.max_age
    backend = args.backend or settings.purge_backend
    if backend == "github":
        purger = GitHubCachePurger(_client(config, required=True), _require_repo(config))
        removed = purger.purge(max_age)
    else:
        removed = store.purge(max_age)
    _print({"backend": backend, "max_age_minutes": max_age, "removed": [entry.model_dump(mode="json") for entry in removed]})
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
