"""Publish workflow helpers."""

from .models import PublishContext, PublishResult, UploadResult
from .publish import PublishError, publish_release, render_release_body

__all__ = [
    "PublishContext",
    "PublishError",
    "PublishResult",
    "UploadResult",
    "publish_release",
    "render_release_body",
]
