"""Data models used while publishing a release."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional


@dataclass(slots=True)
class UploadResult:
    adapter: str
    status: str
    url: Optional[str] = None
    assets: List[str] = field(default_factory=list)
    details: Dict[str, object] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "adapter": self.adapter,
            "status": self.status,
            "url": self.url,
            "assets": self.assets,
            "details": self.details,
            "logs": self.logs,
        }


@dataclass(slots=True)
class PublishContext:
    repo: str
    tag: str
    files: List[Path]
    body: str
    prerelease: bool = False
    append_body: bool = True
    dry_run: bool = False
    adapter_name: str = "github"
    adapter_options: Dict[str, object] = field(default_factory=dict)
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class PublishResult:
    tag: str
    prerelease: bool
    files: List[Path]
    upload: UploadResult
    logs: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)
    metadata: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "tag": self.tag,
            "prerelease": self.prerelease,
            "files": [str(path) for path in self.files],
            "upload": self.upload.to_dict(),
            "logs": self.logs,
            "next_steps": self.next_steps,
            "metadata": self.metadata,
        }
