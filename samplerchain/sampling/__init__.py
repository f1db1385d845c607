"""
Sampler configuration and pipeline assembly.

Configure one sampling method plus shared penalty and grammar settings, then
build an ordered stage chain from it through a model handle and stage runtime.
"""

from .builder import build_pipeline, method_stages, plan_stages
from .config import GrammarConfig, SamplerConfig
from .constants import DEFAULT_SEED, DRY_SEQUENCE_BREAKERS, MIROSTAT_V1_CANDIDATES
from .methods import (
    DRY,
    METHOD_TYPES,
    XTC,
    Greedy,
    MinP,
    MirostatV1,
    MirostatV2,
    SamplerMethod,
    Temperature,
    TopK,
    TopP,
    TypicalP,
    default_method,
    method_from_dict,
    method_to_dict,
)
from .stages import ModelHandle, StageRuntime, StageSpec

__all__ = [
    # Configuration
    "SamplerConfig",
    "GrammarConfig",
    # Method variants
    "SamplerMethod",
    "Greedy",
    "DRY",
    "TopK",
    "TopP",
    "MinP",
    "XTC",
    "TypicalP",
    "Temperature",
    "MirostatV1",
    "MirostatV2",
    "METHOD_TYPES",
    "default_method",
    "method_from_dict",
    "method_to_dict",
    # Pipeline assembly
    "ModelHandle",
    "StageRuntime",
    "StageSpec",
    "build_pipeline",
    "plan_stages",
    "method_stages",
    # Constants
    "DEFAULT_SEED",
    "DRY_SEQUENCE_BREAKERS",
    "MIROSTAT_V1_CANDIDATES",
]
