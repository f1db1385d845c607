"""
Pipeline builder for sampler configurations.

This module turns a SamplerConfig into an ordered list of stages and asks the
model handle and stage runtime to construct them. Stage order is fixed:

    grammar (if configured) -> penalties -> method-specific stages

Every method except Greedy and the two Mirostat variants ends with a seeded
``dist`` draw. Greedy ends with a deterministic argmax, and the Mirostat
stages perform their own draw, so nothing is appended after them.
"""

from typing import List, Optional

from samplerchain.errors import pipeline_logger as logger
from samplerchain.sampling.config import SamplerConfig
from samplerchain.sampling.constants import DRY_SEQUENCE_BREAKERS, MIROSTAT_V1_CANDIDATES
from samplerchain.sampling.methods import (
    DRY,
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
)
from samplerchain.sampling.stages import (
    MODEL_STAGES,
    ModelHandle,
    Pipeline,
    StageRuntime,
    StageSpec,
)


def _dist(seed: int) -> StageSpec:
    return StageSpec("dist", {"seed": seed})


def method_stages(method: SamplerMethod, n_vocab: Optional[int] = None) -> List[StageSpec]:
    """
    Plan the method-specific suffix of a pipeline.

    Args:
        method: The selected sampling method
        n_vocab: Vocabulary size, required only for MirostatV1

    Returns:
        Stage specs in application order

    Raises:
        ValueError: If MirostatV1 is selected without a vocabulary size
        TypeError: If ``method`` is not one of the known method variants
    """
    if isinstance(method, Greedy):
        return [StageSpec("greedy")]

    if isinstance(method, DRY):
        return [
            StageSpec("dry", {
                "multiplier": method.multiplier,
                "base": method.base,
                "allowed_length": method.allowed_length,
                "penalty_last_n": method.penalty_last_n,
                "sequence_breakers": list(DRY_SEQUENCE_BREAKERS),
            }),
            _dist(method.seed),
        ]

    if isinstance(method, TopK):
        return [StageSpec("top_k", {"k": method.top_k}), _dist(method.seed)]

    if isinstance(method, TopP):
        return [
            StageSpec("top_p", {"p": method.top_p, "min_keep": method.min_keep}),
            _dist(method.seed),
        ]

    if isinstance(method, MinP):
        return [
            StageSpec("min_p", {"p": method.min_p, "min_keep": method.min_keep}),
            _dist(method.seed),
        ]

    if isinstance(method, XTC):
        return [
            StageSpec("xtc", {
                "probability": method.probability,
                "threshold": method.threshold,
                "min_keep": method.min_keep,
                "seed": method.seed,
            }),
            _dist(method.seed),
        ]

    if isinstance(method, TypicalP):
        return [
            StageSpec("typical", {"p": method.typ_p, "min_keep": method.min_keep}),
            _dist(method.seed),
        ]

    if isinstance(method, Temperature):
        return [StageSpec("temp", {"t": method.temperature}), _dist(method.seed)]

    if isinstance(method, MirostatV1):
        if n_vocab is None:
            raise ValueError("Mirostat v1 needs the model's vocabulary size")
        return [
            StageSpec("temp", {"t": method.temperature}),
            StageSpec("mirostat", {
                "n_vocab": n_vocab,
                "seed": method.seed,
                "tau": method.tau,
                "eta": method.eta,
                "m": MIROSTAT_V1_CANDIDATES,
            }),
        ]

    if isinstance(method, MirostatV2):
        return [
            StageSpec("temp", {"t": method.temperature}),
            StageSpec("mirostat_v2", {"seed": method.seed, "tau": method.tau, "eta": method.eta}),
        ]

    raise TypeError(f"Unsupported sampler method: {type(method).__name__}")


def plan_stages(config: SamplerConfig, n_vocab: Optional[int] = None) -> List[StageSpec]:
    """
    Plan the full, ordered stage list for a configuration.

    Args:
        config: Sampler configuration
        n_vocab: Vocabulary size, required only when the method is MirostatV1

    Returns:
        Stage specs in application order
    """
    plan = []

    # Grammar masking runs first so later stages only see legal tokens
    if config.grammar is not None:
        plan.append(StageSpec("grammar", {
            "grammar_str": config.grammar.grammar_str,
            "grammar_root": config.grammar.grammar_root,
        }))

    # Always present, even when every penalty is at its disabled default
    plan.append(StageSpec("penalties", {
        "penalty_last_n": config.penalty_last_n,
        "penalty_repeat": config.penalty_repeat,
        "penalty_freq": config.penalty_freq,
        "penalty_present": config.penalty_present,
    }))

    plan.extend(method_stages(config.method, n_vocab))
    return plan


def build_pipeline(
    model: ModelHandle,
    config: SamplerConfig,
    runtime: Optional[StageRuntime] = None,
) -> Pipeline:
    """
    Build a sampling pipeline for the given configuration.

    Args:
        model: Model handle providing the vocabulary size and the grammar and
            penalty stage constructors
        config: Sampler configuration
        runtime: Stage runtime for the method-specific stages and the chain;
            defaults to ``model`` for handles that implement both interfaces

    Returns:
        The runtime's pipeline object wrapping the ordered stages

    If a stage constructor or ``chain`` raises, the stages built so far are
    passed to ``runtime.discard`` and the error propagates unchanged.
    """
    if runtime is None:
        runtime = model

    n_vocab = model.n_vocab() if isinstance(config.method, MirostatV1) else None
    plan = plan_stages(config, n_vocab)

    stages = []
    try:
        for spec in plan:
            target = model if spec.name in MODEL_STAGES else runtime
            stages.append(getattr(target, spec.name)(**spec.params))
        pipeline = runtime.chain(stages)
    except Exception:
        logger.debug(f"Building sampler chain failed, discarding {len(stages)} built stage(s)")
        runtime.discard(stages)
        raise

    logger.debug("sampler chain: " + " -> ".join(spec.describe() for spec in plan))
    return pipeline
