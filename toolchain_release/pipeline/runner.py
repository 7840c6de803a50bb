"""The tag-triggered toolchain release pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..build import apply_config_template, checkout_source, list_tree, relocate_dist, run_build
from ..cache import CacheStore, DirectoryCacheStore, GitHubCachePurger, remove_host_link
from ..config import ReleaseConfig
from ..github import GitHubClient, resolve_token
from ..packaging import pack_toolchain
from ..publish import PublishContext, publish_release, render_release_body
from ..release_info import resolve_release_metadata
from ..trigger import match_trigger
from .steps import (
    STATUS_SKIPPED,
    PipelineError,
    PipelineRunResult,
    RunState,
    Step,
    StepOutcome,
    run_steps,
)

logger = logging.getLogger(__name__)

Purger = Union[CacheStore, GitHubCachePurger]


class ReleasePipeline:
    """Builds the ordered step list and owns the collaborators the steps share."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        cache_store: Optional[CacheStore] = None,
        purger: Optional[Purger] = None,
        client: Optional[GitHubClient] = None,
    ) -> None:
        self.config = config
        self._cache_store = cache_store
        self._purger = purger
        self._client = client

    def cache_store(self, workspace: Path) -> CacheStore:
        if self._cache_store is None:
            root = Path(self.config.cache.store_dir)
            if not root.is_absolute():
                root = workspace / root
            self._cache_store = DirectoryCacheStore(root)
        return self._cache_store

    def client(self) -> GitHubClient:
        if self._client is None:
            settings = self.config.release
            token = resolve_token(settings.token_env, required=False)
            self._client = GitHubClient(token=token, api_url=settings.api_url)
        return self._client

    def purger(self, workspace: Path) -> Purger:
        if self._purger is None:
            if self.config.cache.purge_backend == "github":
                self._purger = GitHubCachePurger(self.client(), self._repo())
            else:
                self._purger = self.cache_store(workspace)
        return self._purger

    def _repo(self) -> str:
        repo = self.config.release.repo
        if not repo:
            raise PipelineError("Repository not configured; set release.repo or GITHUB_REPOSITORY.")
        return repo

    def steps(self) -> List[Step]:
        return [
            Step("checkout", "Fetch source at the configured ref with limited history", self._checkout,
                 condition=lambda state: state.config.checkout.enabled),
            Step("restore-cache", "Restore the build directory from the cache", self._restore_cache),
            Step("remove-host-link", "Remove the restored host link and list the build directory",
                 self._remove_host_link, tolerated=True),
            Step("configure", "Copy the config template over the active build config", self._configure),
            Step("build", "Run the build tool", self._build),
            Step("relocate-dist", "Move the build output into the workspace", self._relocate_dist),
            Step("purge-cache", "Purge stale cache entries", self._purge_cache, tolerated=True,
                 condition=lambda state: state.cache_hit),
            Step("save-cache", "Save the build directory to the cache", self._save_cache),
            Step("release-info", "Resolve previous tag, comparison link and prerelease flag", self._release_info),
            Step("pack", "Archive the toolchain and write its digest", self._pack),
            Step("publish", "Publish the release with archive and digest attached", self._publish),
        ]

    def _build_dir(self, state: RunState) -> Path:
        return state.workspace / self.config.cache.path

    def _checkout(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.checkout
        receipts = checkout_source(
            state.workspace,
            remote=settings.remote,
            ref=settings.ref,
            depth=settings.fetch_depth,
        )
        outcome.data["commands"] = [receipt.to_dict() for receipt in receipts]
        outcome.logs.append(f"Checked out {settings.ref} (depth {settings.fetch_depth}).")

    def _restore_cache(self, state: RunState, outcome: StepOutcome) -> None:
        key = self.config.cache.key
        restored = self.cache_store(state.workspace).restore(key, self._build_dir(state))
        state.cache_hit = restored.hit
        outcome.data.update(restored.to_dict())
        if restored.hit:
            outcome.logs.append(f"Cache hit for {key}.")
        else:
            outcome.logs.append(f"Cache miss for {key}; starting cold.")

    def _remove_host_link(self, state: RunState, outcome: StepOutcome) -> None:
        build_dir = self._build_dir(state)
        removed = remove_host_link(build_dir, self.config.cache.host_link)
        outcome.data["removed"] = removed
        outcome.logs.extend(list_tree(build_dir, depth=1))

    def _configure(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.build
        target = apply_config_template(state.workspace, settings.config_template, settings.config_file)
        outcome.logs.append(f"Copied {settings.config_template} to {target.name}.")

    def _build(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.build
        receipt = run_build(state.workspace, settings.command, settings.args)
        outcome.data["command"] = receipt.to_dict()

    def _relocate_dist(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.build
        dist = relocate_dist(state.workspace, settings.dist_source, settings.dist_name)
        state.artifacts["dist"] = str(dist)
        outcome.logs.extend(list_tree(dist, depth=2))

    def _purge_cache(self, state: RunState, outcome: StepOutcome) -> None:
        max_age = self.config.cache.max_age_minutes
        removed = self.purger(state.workspace).purge(max_age)
        outcome.data["removed"] = [entry.key for entry in removed]
        outcome.logs.append(f"Purged {len(removed)} cache entries older than {max_age} minutes.")

    def _save_cache(self, state: RunState, outcome: StepOutcome) -> None:
        entry = self.cache_store(state.workspace).save(self.config.cache.key, self._build_dir(state))
        outcome.data.update(entry.model_dump(mode="json"))

    def _release_info(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.release
        state.metadata = resolve_release_metadata(
            self.client(),
            repo=self._repo(),
            tag=state.tag,
            server_url=settings.server_url,
            keywords=settings.prerelease_keywords,
        )
        outcome.data.update(state.metadata.to_dict())

    def _pack(self, state: RunState, outcome: StepOutcome) -> None:
        settings = self.config.pack
        state.pack = pack_toolchain(
            state.workspace / self.config.build.dist_name,
            directory=settings.directory,
            destination=state.workspace,
            packed_file=settings.archive_name,
            digest_file=settings.digest_file,
            level=settings.level,
            fmt=settings.format,
        )
        state.artifacts["archive"] = str(state.pack.archive_path)
        state.artifacts["digest"] = str(state.pack.digest_path)
        outcome.data.update(state.pack.to_dict())

    def _publish(self, state: RunState, outcome: StepOutcome) -> None:
        if state.pack is None or state.metadata is None:
            raise PipelineError("Publish requires the pack and release-info steps to have run.")
        settings = self.config.release
        options: dict[str, object] = {"token-env": settings.token_env, "api-url": settings.api_url}
        if settings.adapter == "github" and not state.dry_run:
            options["client"] = self._publishing_client()
        context = PublishContext(
            repo=self._repo(),
            tag=state.tag,
            files=[state.pack.archive_path, state.pack.digest_path],
            body=render_release_body(settings.installation_url, state.metadata.comparison),
            prerelease=state.metadata.prerelease,
            append_body=settings.append_body,
            dry_run=state.dry_run,
            adapter_name=settings.adapter,
            adapter_options=options,
        )
        published = publish_release(context)
        outcome.data.update(published.to_dict())
        outcome.logs.extend(published.logs)

    def _publishing_client(self) -> GitHubClient:
        client = self.client()
        if not client.token:
            client.token = resolve_token(self.config.release.token_env)
        return client

    def run(
        self,
        ref: str,
        workspace: Path,
        *,
        dry_run: bool = False,
        skip: Iterable[str] = (),
    ) -> PipelineRunResult:
        tag = match_trigger(ref, self.config.trigger_patterns)
        if tag is None:
            logger.info("Ref %s does not match %s; nothing to do", ref, self.config.trigger_patterns)
            return PipelineRunResult(status=STATUS_SKIPPED, tag=None)
        steps = self.steps()
        unknown = sorted(set(skip) - {step.name for step in steps})
        if unknown:
            raise PipelineError(f"Unknown step(s) to skip: {', '.join(unknown)}.")
        state = RunState(workspace=workspace.resolve(), tag=tag, config=self.config, dry_run=dry_run)
        return run_steps(steps, state, skip=skip)


def run_release(
    config: ReleaseConfig,
    ref: str,
    workspace: Path,
    *,
    dry_run: bool = False,
    skip: Iterable[str] = (),
    cache_store: Optional[CacheStore] = None,
    client: Optional[GitHubClient] = None,
) -> PipelineRunResult:
    pipeline = ReleasePipeline(config, cache_store=cache_store, client=client)
    return pipeline.run(ref, workspace, dry_run=dry_run, skip=skip)


def build_release_pipeline(config: ReleaseConfig) -> List[Step]:
    return ReleasePipeline(config).steps()
