"""
Tests for building SamplerConfig values from YAML files and overrides.
"""

import logging
import os
from unittest.mock import patch

import pytest

from samplerchain.config_builder import ConfigBuilder
from samplerchain.errors import ConfigurationError, FileReadError, InvalidPathError, ValidationError
from samplerchain.sampling import (
    Greedy,
    MirostatV1,
    MirostatV2,
    SamplerConfig,
    TopK,
    TopP,
)


@pytest.fixture(autouse=True)
def clean_environ():
    """Run every test without SAMPLER_* overrides from the host."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("SAMPLER_")}
    with patch.dict(os.environ, env, clear=True):
        yield


@pytest.fixture(autouse=True)
def restore_loggers():
    """Undo the logging setup applied by the ConfigBuilder factories."""
    names = ["samplerchain", "samplerchain.config", "samplerchain.pipeline"]
    saved = {name: logging.getLogger(name) for name in names}
    state = {name: (lg.level, lg.propagate, list(lg.handlers)) for name, lg in saved.items()}
    yield
    for name, lg in saved.items():
        level, propagate, handlers = state[name]
        lg.setLevel(level)
        lg.propagate = propagate
        lg.handlers = handlers


class TestFromYaml:
    """Loading configurations from YAML files."""

    def test_empty_file_gives_default_config(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text("", encoding="utf-8")

        assert ConfigBuilder.from_yaml(str(path)) == SamplerConfig()

    def test_full_file(self, tmp_path):
        grammar_path = tmp_path / "answer.gbnf"
        grammar_path.write_text('answer ::= "A" | "B"', encoding="utf-8")
        path = tmp_path / "sampler.yaml"
        path.write_text(
            "method:\n"
            "  type: top_p\n"
            "  top_p: 0.9\n"
            "  seed: 42\n"
            "penalty_last_n: 64\n"
            "penalty_repeat: 1.1\n"
            f"grammar_path: {grammar_path}\n"
            "grammar_root: answer\n",
            encoding="utf-8",
        )

        config = ConfigBuilder.from_yaml(str(path))

        assert config.method == TopP(top_p=0.9, min_keep=0, seed=42)
        assert config.penalty_last_n == 64
        assert config.penalty_repeat == 1.1
        assert config.penalty_freq == 0.0
        assert config.grammar.grammar_str == 'answer ::= "A" | "B"'
        assert config.grammar.grammar_root == "answer"

    def test_missing_grammar_file(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text(f"grammar_path: {tmp_path / 'missing.gbnf'}\n", encoding="utf-8")

        with pytest.raises(FileReadError):
            ConfigBuilder.from_yaml(str(path))

    def test_empty_grammar_path(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text("grammar_path: ''\n", encoding="utf-8")

        with pytest.raises(InvalidPathError):
            ConfigBuilder.from_yaml(str(path))

    def test_grammar_path_from_environment(self, tmp_path):
        grammar_path = tmp_path / "g.gbnf"
        grammar_path.write_text("root ::= x", encoding="utf-8")
        path = tmp_path / "sampler.yaml"
        path.write_text("method:\n  type: greedy\n", encoding="utf-8")

        with patch.dict(os.environ, {"SAMPLER_GRAMMAR_PATH": str(grammar_path)}):
            config = ConfigBuilder.from_yaml(str(path))

        assert config.method == Greedy()
        assert config.grammar.grammar_str == "root ::= x"

    def test_invalid_method_parameter(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text("method:\n  type: top_k\n  seed: -1\n", encoding="utf-8")

        with pytest.raises(ValidationError):
            ConfigBuilder.from_yaml(str(path))


class TestOverrides:
    """Overrides applied on top of a validated configuration."""

    def test_no_overrides(self):
        assert ConfigBuilder.from_dict({"method": {"type": "greedy"}}) == SamplerConfig(method=Greedy())

    def test_replace_method(self):
        config = ConfigBuilder.from_dict(
            {"method": {"type": "top_k", "top_k": 10}},
            overrides={"method": {"type": "mirostat_v1", "tau": 3.0}},
        )
        assert config.method == MirostatV1(tau=3.0)

    def test_single_method_parameter(self):
        config = ConfigBuilder.from_dict(
            {"method": {"type": "top_k", "top_k": 10}},
            overrides={"method.seed": 99},
        )
        assert config.method == TopK(top_k=10, seed=99)

    def test_method_type_override_drops_foreign_parameters(self):
        config = ConfigBuilder.from_dict(
            {"method": {"type": "top_k", "top_k": 10, "seed": 5}},
            overrides={"method.type": "mirostat_v2"},
        )
        assert config.method == MirostatV2(seed=5)

    def test_top_level_override(self):
        config = ConfigBuilder.from_dict({}, overrides={"penalty_present": 0.5, "penalty_freq": None})
        assert config.penalty_present == 0.5
        assert config.penalty_freq == 0.0

    def test_override_is_validated(self):
        with pytest.raises(ValidationError):
            ConfigBuilder.from_dict({}, overrides={"penalty_last_n": -5})

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration override: temperature"):
            ConfigBuilder.from_dict({}, overrides={"temperature": 0.7})

    def test_final_config_is_logged(self, caplog):
        caplog.set_level("INFO", logger="samplerchain.config")
        ConfigBuilder.from_dict({"method": {"type": "greedy"}}, configure_logging=False)
        assert "Final configuration created" in caplog.text


class TestLoggingAndReferences:
    """Logging level application, error logging and typed references."""

    def test_log_level_is_applied(self):
        ConfigBuilder.from_dict({"log_level": "DEBUG"})
        assert logging.getLogger("samplerchain").level == logging.DEBUG
        assert logging.getLogger("samplerchain.pipeline").level == logging.DEBUG

    def test_log_level_from_environment(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text("log_level: INFO\n", encoding="utf-8")

        with patch.dict(os.environ, {"SAMPLER_LOG_LEVEL": "ERROR"}):
            ConfigBuilder.from_yaml(str(path))

        assert logging.getLogger("samplerchain").level == logging.ERROR

    def test_logging_left_alone_when_disabled(self):
        package_logger = logging.getLogger("samplerchain")
        level = package_logger.level
        ConfigBuilder.from_dict({"log_level": "CRITICAL"}, configure_logging=False)
        assert package_logger.level == level

    def test_numeric_reference_in_method(self):
        config = ConfigBuilder.from_dict(
            {"method": {"type": "top_k", "seed": "${SAMPLERCHAIN_TEST_SEED:7}"}},
            configure_logging=False,
        )
        assert config.method == TopK(top_k=40, seed=7)

    def test_errors_are_logged_before_raising(self, tmp_path):
        path = tmp_path / "sampler.yaml"
        path.write_text(f"grammar_path: {tmp_path / 'missing.gbnf'}\n", encoding="utf-8")

        with patch("samplerchain.config_builder.log_exception") as mock_log:
            with pytest.raises(FileReadError) as exc_info:
                ConfigBuilder.from_yaml(str(path), configure_logging=False)

        mock_log.assert_called_once()
        assert mock_log.call_args.args[0] is exc_info.value
