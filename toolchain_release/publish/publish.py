"""High-level publish workflow."""

from __future__ import annotations

import logging
from typing import Dict

from .adapters import build_adapter
from .models import PublishContext, PublishResult, UploadResult

logger = logging.getLogger(__name__)


class PublishError(RuntimeError):
    """Raised when release files are missing or the upload fails."""


def render_release_body(installation_url: str, comparison: str = "") -> str:
    body = f"[Installation notes]({installation_url})\n\n"
    if comparison:
        body += f"{comparison}\n"
    return body


def publish_release(context: PublishContext) -> PublishResult:
    missing = [str(path) for path in context.files if not path.is_file()]
    if missing:
        raise PublishError(f"Release files not found: {', '.join(missing)}")

    logs = []
    if context.dry_run:
        upload = UploadResult(
            adapter=context.adapter_name,
            status="skipped",
            logs=["Dry run enabled; upload skipped."],
        )
    else:
        adapter = build_adapter(context.adapter_name, options=context.adapter_options)
        upload = adapter.publish(context)
    logs.extend(upload.logs)
    logger.info("Publish for %s finished with status %s", context.tag, upload.status)

    metadata: Dict[str, object] = {"published_at": context.published_at.isoformat()}
    next_steps = []
    if upload.status != "succeeded":
        next_steps.append(f"Upload {', '.join(path.name for path in context.files)} to release {context.tag}.")

    return PublishResult(
        tag=context.tag,
        prerelease=context.prerelease,
        files=list(context.files),
        upload=upload,
        logs=logs,
        next_steps=next_steps,
        metadata=metadata,
    )
