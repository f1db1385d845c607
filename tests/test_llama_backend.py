"""
Tests for the llama.cpp stage runtime.

The native sampler constructors are patched, so no model file is needed.
"""

from unittest.mock import DEFAULT, Mock, patch

import pytest

llama_cpp = pytest.importorskip("llama_cpp")

from samplerchain.errors import GrammarError  # noqa: E402
from samplerchain.llama_backend import LlamaCppBackend, LlamaSamplerChain  # noqa: E402
from samplerchain.sampling import (  # noqa: E402
    DRY,
    Greedy,
    GrammarConfig,
    MirostatV1,
    SamplerConfig,
    TopK,
    build_pipeline,
)

NATIVE_FUNCTIONS = [
    "llama_model_get_vocab",
    "llama_model_n_ctx_train",
    "llama_vocab_n_tokens",
    "llama_sampler_init_grammar",
    "llama_sampler_init_penalties",
    "llama_sampler_init_greedy",
    "llama_sampler_init_dry",
    "llama_sampler_init_top_k",
    "llama_sampler_init_dist",
    "llama_sampler_init_temp",
    "llama_sampler_init_mirostat",
    "llama_sampler_init_mirostat_v2",
    "llama_sampler_chain_default_params",
    "llama_sampler_chain_init",
    "llama_sampler_chain_add",
    "llama_sampler_sample",
    "llama_sampler_accept",
    "llama_sampler_free",
]


class TestLlamaCppBackend:
    """Pipelines assembled on the native sampler API."""

    def setup_method(self):
        self.patcher = patch.multiple(llama_cpp, **{name: DEFAULT for name in NATIVE_FUNCTIONS})
        self.native = self.patcher.start()
        self.native["llama_model_get_vocab"].return_value = "vocab"
        self.native["llama_model_n_ctx_train"].return_value = 4096
        self.native["llama_vocab_n_tokens"].return_value = 32000
        self.native["llama_sampler_chain_default_params"].return_value = Mock(no_perf=False)
        self.native["llama_sampler_chain_init"].return_value = "chain"
        self.backend = LlamaCppBackend("model")

    def teardown_method(self):
        self.patcher.stop()

    def added_stages(self):
        return [c.args[1] for c in self.native["llama_sampler_chain_add"].call_args_list]

    def test_top_k_chain(self):
        self.native["llama_sampler_init_penalties"].return_value = "penalties"
        self.native["llama_sampler_init_top_k"].return_value = "top_k"
        self.native["llama_sampler_init_dist"].return_value = "dist"

        chain = build_pipeline(self.backend, SamplerConfig(method=TopK(top_k=40, seed=7)))

        assert isinstance(chain, LlamaSamplerChain)
        assert chain.n_stages == 3
        assert self.added_stages() == ["penalties", "top_k", "dist"]
        self.native["llama_sampler_init_penalties"].assert_called_once_with(-1, 0.0, 0.0, 0.0)
        self.native["llama_sampler_init_top_k"].assert_called_once_with(40)
        self.native["llama_sampler_init_dist"].assert_called_once_with(7)
        params = self.native["llama_sampler_chain_init"].call_args.args[0]
        assert params.no_perf is True
        chain.free()

    def test_grammar_is_encoded(self):
        grammar = GrammarConfig('root ::= "ok"', "root")
        chain = build_pipeline(self.backend, SamplerConfig(grammar=grammar))

        self.native["llama_sampler_init_grammar"].assert_called_once_with("vocab", b'root ::= "ok"', b"root")
        chain.free()

    def test_rejected_grammar(self):
        self.native["llama_sampler_init_grammar"].return_value = None

        with pytest.raises(GrammarError):
            build_pipeline(self.backend, SamplerConfig(grammar=GrammarConfig("root ::= ", "root")))

    def test_mirostat_v1_uses_vocab_size(self):
        chain = build_pipeline(self.backend, SamplerConfig(method=MirostatV1()))

        self.native["llama_sampler_init_temp"].assert_called_once_with(0.8)
        self.native["llama_sampler_init_mirostat"].assert_called_once_with(32000, 1234, 5.0, 0.1, 100)
        chain.free()

    def test_dry_breakers(self):
        chain = build_pipeline(self.backend, SamplerConfig(method=DRY(multiplier=0.8)))

        args = self.native["llama_sampler_init_dry"].call_args.args
        assert args[:6] == ("vocab", 4096, 0.8, 1.75, 2, -1)
        assert list(args[6]) == [b"\n", b":", b"\"", b"*"]
        assert args[7] == 4
        chain.free()

    def test_failed_stage(self):
        self.native["llama_sampler_init_top_k"].return_value = None

        with pytest.raises(RuntimeError, match="top-k"):
            build_pipeline(self.backend, SamplerConfig(method=TopK()))

    def test_chain_operations(self):
        chain = build_pipeline(self.backend, SamplerConfig())
        self.native["llama_sampler_sample"].return_value = 17

        assert chain.sample("ctx") == 17
        self.native["llama_sampler_sample"].assert_called_once_with("chain", "ctx", -1)
        chain.accept(17)
        self.native["llama_sampler_accept"].assert_called_once_with("chain", 17)

        chain.free()
        chain.free()
        self.native["llama_sampler_free"].assert_called_once_with("chain")

    def test_failed_stage_frees_built_samplers(self):
        self.native["llama_sampler_init_penalties"].return_value = "penalties"
        self.native["llama_sampler_init_top_k"].return_value = None

        with pytest.raises(RuntimeError):
            build_pipeline(self.backend, SamplerConfig(method=TopK()))

        self.native["llama_sampler_free"].assert_called_once_with("penalties")
        self.native["llama_sampler_chain_add"].assert_not_called()

    def test_rejected_grammar_frees_nothing_else(self):
        self.native["llama_sampler_init_grammar"].return_value = None

        with pytest.raises(GrammarError):
            build_pipeline(self.backend, SamplerConfig(grammar=GrammarConfig("root ::= ", "root")))

        self.native["llama_sampler_init_penalties"].assert_not_called()
        self.native["llama_sampler_free"].assert_not_called()

    def test_failed_chain_frees_all_stages(self):
        self.native["llama_sampler_init_penalties"].return_value = "penalties"
        self.native["llama_sampler_init_greedy"].return_value = "greedy"
        self.native["llama_sampler_chain_init"].return_value = None

        with pytest.raises(RuntimeError, match="chain"):
            build_pipeline(self.backend, SamplerConfig(method=Greedy()))

        freed = [c.args[0] for c in self.native["llama_sampler_free"].call_args_list]
        assert freed == ["penalties", "greedy"]

    def test_from_llama_keeps_owner_alive(self):
        llama = Mock()
        llama._model.model = "model"

        backend = LlamaCppBackend.from_llama(llama)
        chain = build_pipeline(backend, SamplerConfig())

        assert backend.llama is llama
        assert backend.model_p == "model"
        assert chain._owner is backend
        chain.free()
