"""Token resolution for GitHub API access."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from dotenv import dotenv_values


@dataclass(frozen=True)
class SecretSpec:
    name: str
    description: str = ""


class SecretResolver(Protocol):
    def resolve(self, spec: SecretSpec) -> Optional[str]:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class SecretAttempt:
    resolver: str
    success: bool
    details: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SecretResolutionInfo:
    name: str
    value: Optional[str]
    resolver: Optional[str]
    attempts: List[SecretAttempt]

    def describe_attempts(self) -> str:
        if not self.attempts:
            return "none"
        parts = []
        for attempt in self.attempts:
            label = attempt.resolver
            path = attempt.details.get("path")
            if path:
                label = f"{label}@{path}"
            parts.append(f"{label} ({'resolved' if attempt.success else 'missing'})")
        return ", ".join(parts)


@dataclass
class _RegisteredResolver:
    priority: int
    name: str
    resolver: SecretResolver
    details: dict[str, object]


_secret_specs: dict[str, SecretSpec] = {}
_resolvers: List[_RegisteredResolver] = []


def register_secret(spec: SecretSpec) -> None:
    _secret_specs.setdefault(spec.name, spec)


def register_resolver(
    resolver: SecretResolver,
    priority: int = 0,
    *,
    name: Optional[str] = None,
    details: Optional[dict[str, object]] = None,
) -> None:
    _resolvers.append(
        _RegisteredResolver(
            priority=priority,
            name=name or resolver.__class__.__name__,
            resolver=resolver,
            details=dict(details or {}),
        )
    )
    _resolvers.sort(key=lambda item: item.priority, reverse=True)


class EnvResolver:
    """Resolve secrets from process environment variables."""

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        value = os.getenv(spec.name)
        return value if value else None


class DotEnvResolver:
    """Resolve secrets from a ``.env`` file without touching ``os.environ``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._values: Optional[Dict[str, Optional[str]]] = None

    def resolve(self, spec: SecretSpec) -> Optional[str]:
        if self._values is None:
            self._values = dotenv_values(self.path) if self.path.exists() else {}
        value = self._values.get(spec.name)
        return value if value else None


register_resolver(EnvResolver(), priority=0, name="env")


def use_dotenv(path: str | Path, *, priority: int = -10) -> None:
    resolved = Path(path)
    register_resolver(
        DotEnvResolver(resolved),
        priority=priority,
        name="dotenv",
        details={"path": str(resolved)},
    )


def resolve_secret_info(name: str) -> SecretResolutionInfo:
    spec = _secret_specs.get(name, SecretSpec(name=name))
    attempts: List[SecretAttempt] = []
    for entry in _resolvers:
        value = entry.resolver.resolve(spec)
        attempts.append(SecretAttempt(resolver=entry.name, success=bool(value), details=dict(entry.details)))
        if value:
            return SecretResolutionInfo(name=spec.name, value=value, resolver=entry.name, attempts=attempts)
    return SecretResolutionInfo(name=spec.name, value=None, resolver=None, attempts=attempts)
