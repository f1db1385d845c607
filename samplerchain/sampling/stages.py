"""
Stage interfaces and shared components.

This module defines the two narrow capability interfaces the pipeline builder
depends on (the model handle and the stage runtime) and the StageSpec record
describing one planned stage. Stage objects themselves are opaque: whatever a
runtime's constructors return is passed back to its ``chain`` untouched.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

Stage = Any
Pipeline = Any

# Stages whose constructors live on the model handle rather than the runtime
MODEL_STAGES = frozenset({"grammar", "penalties"})


@dataclass(frozen=True)
class StageSpec:
    """One planned stage: the constructor name and its keyword arguments."""

    name: str
    params: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        if not self.params:
            return self.name
        args = " ".join(f"{key}:{value!r}" for key, value in self.params.items())
        return f"{self.name} {args}"


class ModelHandle(ABC):
    """Model-side capabilities needed while building a pipeline."""

    @abstractmethod
    def n_vocab(self) -> int:
        """Return the vocabulary size."""
        pass

    @abstractmethod
    def grammar(self, grammar_str: str, grammar_root: str) -> Stage:
        """Create a grammar-constrained masking stage."""
        pass

    @abstractmethod
    def penalties(
        self,
        penalty_last_n: int,
        penalty_repeat: float,
        penalty_freq: float,
        penalty_present: float,
    ) -> Stage:
        """Create a repetition penalty stage."""
        pass


class StageRuntime(ABC):
    """Constructors for method-specific stages and the chain that composes them."""

    @abstractmethod
    def greedy(self) -> Stage:
        pass

    @abstractmethod
    def dry(
        self,
        multiplier: float,
        base: float,
        allowed_length: int,
        penalty_last_n: int,
        sequence_breakers: List[str],
    ) -> Stage:
        pass

    @abstractmethod
    def top_k(self, k: int) -> Stage:
        pass

    @abstractmethod
    def top_p(self, p: float, min_keep: int) -> Stage:
        pass

    @abstractmethod
    def min_p(self, p: float, min_keep: int) -> Stage:
        pass

    @abstractmethod
    def xtc(self, probability: float, threshold: float, min_keep: int, seed: int) -> Stage:
        pass

    @abstractmethod
    def typical(self, p: float, min_keep: int) -> Stage:
        pass

    @abstractmethod
    def temp(self, t: float) -> Stage:
        pass

    @abstractmethod
    def dist(self, seed: int) -> Stage:
        """Create the seeded draw stage that ends most chains."""
        pass

    @abstractmethod
    def mirostat(self, n_vocab: int, seed: int, tau: float, eta: float, m: int) -> Stage:
        pass

    @abstractmethod
    def mirostat_v2(self, seed: int, tau: float, eta: float) -> Stage:
        pass

    @abstractmethod
    def chain(self, stages: Sequence[Stage]) -> Pipeline:
        """
        Compose stages into one pipeline applied left to right.

        Args:
            stages: Stages in application order

        Returns:
            The runtime's pipeline object
        """
        pass

    def discard(self, stages: Sequence[Stage]) -> None:
        """
        Release stages that were built but never handed to ``chain``.

        Called when building a pipeline fails part way through. Runtimes whose
        stages are plain Python objects have nothing to release.
        """
        pass
