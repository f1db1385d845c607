"""
samplerchain - token-sampling pipeline configuration.

This package turns a declarative sampler configuration into an ordered chain
of sampling stages built by an external model runtime.
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    FileReadError,
    GrammarError,
    InvalidPathError,
    SamplerChainError,
    ValidationError,
    setup_logging,
)
from .sampling import GrammarConfig, SamplerConfig, build_pipeline

__all__ = [
    "SamplerConfig",
    "GrammarConfig",
    "build_pipeline",
    "setup_logging",
    "SamplerChainError",
    "GrammarError",
    "InvalidPathError",
    "FileReadError",
    "ConfigurationError",
    "ValidationError",
]
