"""Build, pack and publish compiler toolchain releases from tag pushes."""

from .config import ConfigError, ReleaseConfig, load_config
from .pipeline import PipelineError, PipelineRunResult, ReleasePipeline, run_release
from .release_info import ReleaseMetadata, is_prerelease, resolve_release_metadata
from .trigger import match_trigger

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigError",
    "PipelineError",
    "PipelineRunResult",
    "ReleaseConfig",
    "ReleaseMetadata",
    "ReleasePipeline",
    "is_prerelease",
    "load_config",
    "match_trigger",
    "resolve_release_metadata",
    "run_release",
]
