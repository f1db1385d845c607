"""
llama.cpp stage runtime.

This module implements both pipeline capability interfaces on top of the
low-level sampler API exposed by ``llama-cpp-python``. Install it with the
``llama`` extra.
"""

import ctypes
from typing import Any, List, Sequence

import llama_cpp

from samplerchain.errors import GrammarError, pipeline_logger as logger
from samplerchain.sampling.stages import ModelHandle, StageRuntime


def _check(sampler_p: Any, name: str) -> Any:
    if not sampler_p:
        raise RuntimeError(f"Failed to initialize {name} sampler")
    return sampler_p


class LlamaSamplerChain:
    """A native llama.cpp sampler chain. The chain owns every stage added to it."""

    def __init__(self, chain_p: Any, n_stages: int, owner: Any = None):
        self.chain_p = chain_p
        self.n_stages = n_stages
        # Stages reference the model vocab, so the model must outlive the chain
        self._owner = owner

    def sample(self, ctx: Any, idx: int = -1) -> int:
        """Sample a token from the logits at ``idx`` of a llama_context pointer."""
        return llama_cpp.llama_sampler_sample(self.chain_p, ctx, idx)

    def accept(self, token: int) -> None:
        """Feed a chosen token back so stateful stages (penalties, grammar) advance."""
        llama_cpp.llama_sampler_accept(self.chain_p, token)

    def reset(self) -> None:
        llama_cpp.llama_sampler_reset(self.chain_p)

    def free(self) -> None:
        if self.chain_p is not None:
            llama_cpp.llama_sampler_free(self.chain_p)
            self.chain_p = None

    def __del__(self):
        self.free()


class LlamaCppBackend(ModelHandle, StageRuntime):
    """Model handle and stage runtime backed by a loaded llama.cpp model."""

    def __init__(self, model_p: Any, no_perf: bool = True, llama: Any = None):
        """
        Args:
            model_p: ``llama_model`` pointer of a loaded model
            no_perf: Disable performance counters on built chains
            llama: Object owning ``model_p``; kept alive as long as this
                backend and the chains it builds
        """
        self.model_p = model_p
        self.llama = llama
        self.vocab_p = llama_cpp.llama_model_get_vocab(model_p)
        self.no_perf = no_perf

    @classmethod
    def from_llama(cls, llama: Any, no_perf: bool = True) -> "LlamaCppBackend":
        """Wrap the model owned by a high-level ``llama_cpp.Llama`` instance."""
        return cls(llama._model.model, no_perf=no_perf, llama=llama)

    # --- ModelHandle ---

    def n_vocab(self) -> int:
        return llama_cpp.llama_vocab_n_tokens(self.vocab_p)

    def grammar(self, grammar_str: str, grammar_root: str) -> Any:
        sampler_p = llama_cpp.llama_sampler_init_grammar(
            self.vocab_p, grammar_str.encode("utf-8"), grammar_root.encode("utf-8")
        )
        if not sampler_p:
            raise GrammarError(
                "llama.cpp rejected the grammar",
                details={"grammar_root": grammar_root, "grammar_chars": len(grammar_str)},
            )
        return sampler_p

    def penalties(
        self,
        penalty_last_n: int,
        penalty_repeat: float,
        penalty_freq: float,
        penalty_present: float,
    ) -> Any:
        # llama.cpp clamps a negative window to 0, which disables the stage
        return _check(
            llama_cpp.llama_sampler_init_penalties(
                penalty_last_n, penalty_repeat, penalty_freq, penalty_present
            ),
            "penalties",
        )

    # --- StageRuntime ---

    def greedy(self) -> Any:
        return _check(llama_cpp.llama_sampler_init_greedy(), "greedy")

    def dry(
        self,
        multiplier: float,
        base: float,
        allowed_length: int,
        penalty_last_n: int,
        sequence_breakers: List[str],
    ) -> Any:
        c_breakers = (ctypes.c_char_p * len(sequence_breakers))()
        c_breakers[:] = [b.encode("utf-8") for b in sequence_breakers]
        return _check(
            llama_cpp.llama_sampler_init_dry(
                self.vocab_p,
                llama_cpp.llama_model_n_ctx_train(self.model_p),
                multiplier,
                base,
                allowed_length,
                penalty_last_n,
                c_breakers,
                len(sequence_breakers),
            ),
            "dry",
        )

    def top_k(self, k: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_top_k(k), "top-k")

    def top_p(self, p: float, min_keep: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_top_p(p, min_keep), "top-p")

    def min_p(self, p: float, min_keep: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_min_p(p, min_keep), "min-p")

    def xtc(self, probability: float, threshold: float, min_keep: int, seed: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_xtc(probability, threshold, min_keep, seed), "xtc")

    def typical(self, p: float, min_keep: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_typical(p, min_keep), "typical")

    def temp(self, t: float) -> Any:
        return _check(llama_cpp.llama_sampler_init_temp(t), "temp")

    def dist(self, seed: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_dist(seed), "dist")

    def mirostat(self, n_vocab: int, seed: int, tau: float, eta: float, m: int) -> Any:
        return _check(llama_cpp.llama_sampler_init_mirostat(n_vocab, seed, tau, eta, m), "mirostat")

    def mirostat_v2(self, seed: int, tau: float, eta: float) -> Any:
        return _check(llama_cpp.llama_sampler_init_mirostat_v2(seed, tau, eta), "mirostat v2")

    def chain(self, stages: Sequence[Any]) -> LlamaSamplerChain:
        params = llama_cpp.llama_sampler_chain_default_params()
        params.no_perf = self.no_perf
        chain_p = _check(llama_cpp.llama_sampler_chain_init(params), "chain")

        for sampler_p in stages:
            llama_cpp.llama_sampler_chain_add(chain_p, sampler_p)

        logger.debug(f"Created llama.cpp sampler chain with {len(stages)} stages")
        return LlamaSamplerChain(chain_p, len(stages), owner=self)

    def discard(self, stages: Sequence[Any]) -> None:
        for sampler_p in stages:
            llama_cpp.llama_sampler_free(sampler_p)
        logger.debug(f"Freed {len(stages)} unchained llama.cpp sampler(s)")
