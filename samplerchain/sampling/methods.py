"""
Sampling method variants.

A sampler configuration selects exactly one of the method classes below. Each
variant is a frozen, data-only dataclass holding its own parameters and its own
defaults; the pipeline builder is the only code that interprets them.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Tuple, Type, Union

from samplerchain.errors import ConfigurationError
from samplerchain.sampling.constants import (
    DEFAULT_DRY_ALLOWED_LENGTH,
    DEFAULT_DRY_BASE,
    DEFAULT_DRY_MULTIPLIER,
    DEFAULT_DRY_PENALTY_LAST_N,
    DEFAULT_MIN_KEEP,
    DEFAULT_MIN_P,
    DEFAULT_MIROSTAT_ETA,
    DEFAULT_MIROSTAT_TAU,
    DEFAULT_SEED,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_K,
    DEFAULT_TOP_P,
    DEFAULT_TYPICAL_P,
    DEFAULT_XTC_PROBABILITY,
    DEFAULT_XTC_THRESHOLD,
)


@dataclass(frozen=True)
class Greedy:
    """Always pick the highest-probability token."""

    name: ClassVar[str] = "greedy"


@dataclass(frozen=True)
class DRY:
    """Repetition breaking through an n-gram penalty, followed by a seeded draw."""

    name: ClassVar[str] = "dry"

    seed: int = DEFAULT_SEED
    multiplier: float = DEFAULT_DRY_MULTIPLIER
    base: float = DEFAULT_DRY_BASE
    allowed_length: int = DEFAULT_DRY_ALLOWED_LENGTH
    penalty_last_n: int = DEFAULT_DRY_PENALTY_LAST_N


@dataclass(frozen=True)
class TopK:
    """Restrict to the k most probable tokens."""

    name: ClassVar[str] = "top_k"

    top_k: int = DEFAULT_TOP_K
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class TopP:
    """Nucleus sampling."""

    name: ClassVar[str] = "top_p"

    top_p: float = DEFAULT_TOP_P
    min_keep: int = DEFAULT_MIN_KEEP
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class MinP:
    """Drop tokens below ``min_p`` times the top token's probability."""

    name: ClassVar[str] = "min_p"

    min_p: float = DEFAULT_MIN_P
    min_keep: int = DEFAULT_MIN_KEEP
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class XTC:
    """Exclude-top-choices sampling."""

    name: ClassVar[str] = "xtc"

    probability: float = DEFAULT_XTC_PROBABILITY
    threshold: float = DEFAULT_XTC_THRESHOLD
    min_keep: int = DEFAULT_MIN_KEEP
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class TypicalP:
    """Locally typical sampling."""

    name: ClassVar[str] = "typical_p"

    typ_p: float = DEFAULT_TYPICAL_P
    min_keep: int = DEFAULT_MIN_KEEP
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class Temperature:
    """Plain temperature-scaled draw."""

    name: ClassVar[str] = "temperature"

    temperature: float = DEFAULT_TEMPERATURE
    seed: int = DEFAULT_SEED


@dataclass(frozen=True)
class MirostatV1:
    """Target-entropy adaptive sampling, version 1."""

    name: ClassVar[str] = "mirostat_v1"

    seed: int = DEFAULT_SEED
    temperature: float = DEFAULT_TEMPERATURE
    tau: float = DEFAULT_MIROSTAT_TAU
    eta: float = DEFAULT_MIROSTAT_ETA


@dataclass(frozen=True)
class MirostatV2:
    """Target-entropy adaptive sampling, version 2."""

    name: ClassVar[str] = "mirostat_v2"

    seed: int = DEFAULT_SEED
    temperature: float = DEFAULT_TEMPERATURE
    tau: float = DEFAULT_MIROSTAT_TAU
    eta: float = DEFAULT_MIROSTAT_ETA


SamplerMethod = Union[
    Greedy,
    DRY,
    TopK,
    TopP,
    MinP,
    XTC,
    TypicalP,
    Temperature,
    MirostatV1,
    MirostatV2,
]

METHOD_CLASSES: Tuple[Type, ...] = (
    Greedy,
    DRY,
    TopK,
    TopP,
    MinP,
    XTC,
    TypicalP,
    Temperature,
    MirostatV1,
    MirostatV2,
)

METHOD_TYPES: Dict[str, Type] = {cls.name: cls for cls in METHOD_CLASSES}


def default_method() -> MirostatV2:
    """Return the method used when a configuration does not choose one."""
    return MirostatV2()


def method_from_dict(data: Dict[str, Any]) -> SamplerMethod:
    """
    Build a method variant from a ``{"type": name, **params}`` mapping.

    Missing parameters take the variant's own defaults.

    Raises:
        ConfigurationError: If the type is unknown or a parameter does not
            belong to the selected variant
    """
    params = dict(data)
    method_type = params.pop("type", None)
    if method_type not in METHOD_TYPES:
        raise ConfigurationError(
            f"Unknown sampler method: {method_type}. Available: {list(METHOD_TYPES.keys())}",
            details={"type": method_type},
        )

    method_cls = METHOD_TYPES[method_type]
    allowed = {f.name for f in fields(method_cls)}
    unexpected = set(params) - allowed
    if unexpected:
        raise ConfigurationError(
            f"Unexpected parameters for sampler method '{method_type}': {sorted(unexpected)}",
            details={"type": method_type, "allowed": sorted(allowed)},
        )

    return method_cls(**params)


def method_to_dict(method: SamplerMethod) -> Dict[str, Any]:
    """Inverse of :func:`method_from_dict`."""
    result = {"type": method.name}
    result.update(asdict(method))
    return result
