"""
Configuration classes for sampler pipelines.

This module defines the immutable values a pipeline is built from: the
grammar definition and the sampler configuration aggregating one method with
the shared penalty settings.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from samplerchain.errors import FileReadError, InvalidPathError, config_logger as logger
from samplerchain.sampling.constants import (
    DEFAULT_GRAMMAR_ROOT,
    DEFAULT_PENALTY_FREQ,
    DEFAULT_PENALTY_LAST_N,
    DEFAULT_PENALTY_PRESENT,
    DEFAULT_PENALTY_REPEAT,
)
from samplerchain.sampling.methods import SamplerMethod, default_method, method_to_dict


@dataclass(frozen=True)
class GrammarConfig:
    """Grammar source text plus the name of its root rule."""

    grammar_str: str
    grammar_root: str = DEFAULT_GRAMMAR_ROOT

    @classmethod
    def from_file(
        cls, path: Union[str, "os.PathLike[str]"], grammar_root: str = DEFAULT_GRAMMAR_ROOT
    ) -> "GrammarConfig":
        """
        Create a GrammarConfig from a grammar file.

        Args:
            path: Path to the grammar file
            grammar_root: Name of the root rule

        Returns:
            GrammarConfig holding the exact file contents

        Raises:
            InvalidPathError: If the path is empty (no I/O is attempted)
            FileReadError: If the file cannot be opened, read or decoded
        """
        path_str = os.fspath(path)
        if not path_str:
            raise InvalidPathError()

        try:
            # newline="" keeps line endings exactly as stored
            with open(path_str, "r", encoding="utf-8", newline="") as f:
                grammar_str = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(path_str, e) from e

        logger.debug(f"Loaded grammar from {path_str} ({len(grammar_str)} chars, root '{grammar_root}')")
        return cls(grammar_str=grammar_str, grammar_root=grammar_root)


@dataclass(frozen=True)
class SamplerConfig:
    """Sampling behaviour: one method plus shared penalty and grammar settings.

    ``penalty_last_n`` is handed unchanged to the runtime's penalty stage;
    the default of -1 is that stage's "no penalty window" sentinel.
    Use ``dataclasses.replace`` to derive modified copies.
    """

    method: SamplerMethod = field(default_factory=default_method)
    penalty_last_n: int = DEFAULT_PENALTY_LAST_N
    penalty_repeat: float = DEFAULT_PENALTY_REPEAT
    penalty_freq: float = DEFAULT_PENALTY_FREQ
    penalty_present: float = DEFAULT_PENALTY_PRESENT
    grammar: Optional[GrammarConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict view for logging and export (grammar text is summarised)."""
        grammar = None
        if self.grammar is not None:
            grammar = {
                "grammar_root": self.grammar.grammar_root,
                "grammar_chars": len(self.grammar.grammar_str),
            }
        return {
            "method": method_to_dict(self.method),
            "penalty_last_n": self.penalty_last_n,
            "penalty_repeat": self.penalty_repeat,
            "penalty_freq": self.penalty_freq,
            "penalty_present": self.penalty_present,
            "grammar": grammar,
        }
