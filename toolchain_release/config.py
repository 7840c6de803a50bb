"""Pydantic models describing one release pipeline configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CONFIG_FILE = "toolchain-release.yml"


class ConfigError(RuntimeError):
    """Raised when the pipeline configuration cannot be loaded or validated."""


class CheckoutSettings(BaseModel):
    enabled: bool = True
    remote: str = "origin"
    ref: str = "rust9x"
    fetch_depth: int = Field(default=50, ge=1)

    model_config = ConfigDict(extra="forbid")


class CacheSettings(BaseModel):
    key: str = "Windows-build"
    path: str = "build"
    store_dir: str = Field(
        default=".toolchain-cache",
        description="Directory holding cache blobs for the directory store.",
    )
    max_age_minutes: int = Field(default=60, ge=0)
    purge_backend: Literal["directory", "github"] = "directory"
    host_link: str = "host"

    model_config = ConfigDict(extra="forbid")


class BuildSettings(BaseModel):
    config_template: str = "config.rust9x.toml"
    config_file: str = "config.toml"
    command: List[str] = Field(default_factory=lambda: ["python", "x.py", "install"])
    args: List[str] = Field(default_factory=lambda: ["--incremental", "--verbose"])
    dist_source: str = "../dist"
    dist_name: str = "dist"

    model_config = ConfigDict(extra="forbid")

    @field_validator("args", mode="before")
    @classmethod
    def _split_args(cls, value: object) -> object:
        if isinstance(value, str):
            return value.split()
        return value


class PackSettings(BaseModel):
    directory: str = "rust9x"
    format: Literal["tar.xz", "7z"] = "tar.xz"
    packed_file: Optional[str] = None
    digest_file: str = "sha256sum.txt"
    level: int = Field(default=5, ge=0, le=9)

    model_config = ConfigDict(extra="forbid")

    @property
    def archive_name(self) -> str:
        if self.packed_file:
            return self.packed_file
        return f"{self.directory}.{self.format}"


class ReleaseSettings(BaseModel):
    repo: Optional[str] = None
    server_url: str = "https://github.com"
    api_url: str = "https://api.github.com"
    token_env: str = "GITHUB_TOKEN"
    installation_url: str = "https://github.com/rust9x/rust/wiki#installation"
    prerelease_keywords: List[str] = Field(default_factory=lambda: ["alpha", "beta", "rc"])
    append_body: bool = True
    adapter: Literal["github", "noop"] = "github"

    model_config = ConfigDict(extra="forbid")


class ReleaseConfig(BaseModel):
    trigger_patterns: List[str] = Field(default_factory=lambda: ["*.*"])
    checkout: CheckoutSettings = Field(default_factory=CheckoutSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    pack: PackSettings = Field(default_factory=PackSettings)
    release: ReleaseSettings = Field(default_factory=ReleaseSettings)

    model_config = ConfigDict(extra="forbid")

    def apply_environment(self, env: Mapping[str, str]) -> "ReleaseConfig":
        """Fill repository coordinates from CI environment variables."""

        updates = {}
        if not self.release.repo and env.get("GITHUB_REPOSITORY"):
            updates["repo"] = env["GITHUB_REPOSITORY"]
        if env.get("GITHUB_SERVER_URL"):
            updates["server_url"] = env["GITHUB_SERVER_URL"]
        if env.get("GITHUB_API_URL"):
            updates["api_url"] = env["GITHUB_API_URL"]
        if not updates:
            return self
        return self.model_copy(update={"release": self.release.model_copy(update=updates)})


def load_config(path: Optional[str | Path] = None, *, env: Optional[Mapping[str, str]] = None) -> ReleaseConfig:
    """Load configuration from YAML; without a path only defaults and the environment apply."""

    environ = os.environ if env is None else env
    payload: object = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            payload = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping at the top level.")

    try:
        config = ReleaseConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path or 'defaults'}: {exc}") from exc
    return config.apply_environment(environ)
