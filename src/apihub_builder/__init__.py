"""API package builder: comparison orchestration, search indexing and validation."""

from __future__ import annotations

from .cli import main
from .config import BuildConfig, BuildConfigError, BuilderConfiguration
from .model_types import BuildResult
from .resolvers import BuilderResolvers
from .strategies import BuilderContext, create_strategy, run_build

__all__ = [
    "BuildConfig",
    "BuildConfigError",
    "BuildResult",
    "BuilderConfiguration",
    "BuilderContext",
    "BuilderResolvers",
    "create_strategy",
    "main",
    "run_build",
]
