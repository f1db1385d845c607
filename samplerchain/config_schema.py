"""
Configuration schema validation and environment variable support.

This module provides schema validation for YAML sampler configuration files
and support for environment variable substitution.
"""

import os
from typing import Any, Dict, Optional

import yaml

from samplerchain.config_validation import ConfigValidator
from samplerchain.env_resolver import EnvironmentVariableResolver
from samplerchain.errors import ConfigurationError, ValidationError
from samplerchain.sampling import constants as C
from samplerchain.sampling.config import SamplerConfig
from samplerchain.sampling.methods import METHOD_TYPES, method_to_dict

U32_MAX = 2**32 - 1


def _seed_field() -> Dict[str, Any]:
    return {
        "type": int,
        "required": False,
        "default": C.DEFAULT_SEED,
        "description": "Seed for the final draw",
        "min_value": 0,
        "max_value": U32_MAX,
    }


def _min_keep_field() -> Dict[str, Any]:
    return {
        "type": int,
        "required": False,
        "default": C.DEFAULT_MIN_KEEP,
        "description": "Minimum number of tokens kept by the filter",
        "min_value": 0,
    }


def _probability_field(default: float, description: str) -> Dict[str, Any]:
    return {
        "type": float,
        "required": False,
        "default": default,
        "description": description,
        "min_value": 0.0,
        "max_value": 1.0,
    }


def _temperature_field() -> Dict[str, Any]:
    return {
        "type": float,
        "required": False,
        "default": C.DEFAULT_TEMPERATURE,
        "description": "Temperature applied before sampling",
        "min_value": 0.0,
    }


def _mirostat_schema() -> Dict[str, Any]:
    return {
        "seed": _seed_field(),
        "temperature": _temperature_field(),
        "tau": {
            "type": float,
            "required": False,
            "default": C.DEFAULT_MIROSTAT_TAU,
            "description": "Target surprise (entropy)",
            "min_value": 0.0,
        },
        "eta": {
            "type": float,
            "required": False,
            "default": C.DEFAULT_MIROSTAT_ETA,
            "description": "Learning rate",
            "min_value": 0.0,
        },
    }


class ConfigSchema:
    """Defines the schema for sampler configuration files."""

    SCHEMA = {
        "method": {
            "type": dict,
            "required": False,
            "default": None,
            "description": "Sampling method: a 'type' plus that method's parameters",
        },
        "penalty_last_n": {
            "type": int,
            "required": False,
            "default": C.DEFAULT_PENALTY_LAST_N,
            "description": "Penalty window in tokens (-1: no penalty window)",
            "min_value": -1,
            "env_var": "SAMPLER_PENALTY_LAST_N",
        },
        "penalty_repeat": {
            "type": float,
            "required": False,
            "default": C.DEFAULT_PENALTY_REPEAT,
            "description": "Repetition penalty multiplier",
            "env_var": "SAMPLER_PENALTY_REPEAT",
        },
        "penalty_freq": {
            "type": float,
            "required": False,
            "default": C.DEFAULT_PENALTY_FREQ,
            "description": "Frequency penalty",
            "env_var": "SAMPLER_PENALTY_FREQ",
        },
        "penalty_present": {
            "type": float,
            "required": False,
            "default": C.DEFAULT_PENALTY_PRESENT,
            "description": "Presence penalty",
            "env_var": "SAMPLER_PENALTY_PRESENT",
        },
        "grammar_path": {
            "type": str,
            "required": False,
            "default": None,
            "description": "Path to a grammar file constraining the output",
            "env_var": "SAMPLER_GRAMMAR_PATH",
        },
        "grammar_root": {
            "type": str,
            "required": False,
            "default": C.DEFAULT_GRAMMAR_ROOT,
            "description": "Root rule of the grammar",
            "env_var": "SAMPLER_GRAMMAR_ROOT",
        },
        "log_level": {
            "type": str,
            "required": False,
            "default": "INFO",
            "description": "Logging level",
            "choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            "env_var": "SAMPLER_LOG_LEVEL",
        },
    }

    # Method fields that can be overridden from the environment
    METHOD_ENV_SCHEMA = {
        "type": {"type": str, "env_var": "SAMPLER_METHOD"},
        "seed": {"type": int, "env_var": "SAMPLER_SEED"},
    }

    METHOD_SCHEMAS = {
        "greedy": {},
        "dry": {
            "seed": _seed_field(),
            "multiplier": {
                "type": float,
                "required": False,
                "default": C.DEFAULT_DRY_MULTIPLIER,
                "description": "DRY penalty multiplier (0 disables)",
                "min_value": 0.0,
            },
            "base": {
                "type": float,
                "required": False,
                "default": C.DEFAULT_DRY_BASE,
                "description": "DRY penalty base",
                "min_value": 0.0,
            },
            "allowed_length": {
                "type": int,
                "required": False,
                "default": C.DEFAULT_DRY_ALLOWED_LENGTH,
                "description": "Longest repeated sequence left unpenalized",
                "min_value": 0,
            },
            "penalty_last_n": {
                "type": int,
                "required": False,
                "default": C.DEFAULT_DRY_PENALTY_LAST_N,
                "description": "Tokens scanned for repetitions (-1: whole context)",
                "min_value": -1,
            },
        },
        "top_k": {
            "top_k": {
                "type": int,
                "required": False,
                "default": C.DEFAULT_TOP_K,
                "description": "Number of most probable tokens kept",
            },
            "seed": _seed_field(),
        },
        "top_p": {
            "top_p": _probability_field(C.DEFAULT_TOP_P, "Cumulative probability kept"),
            "min_keep": _min_keep_field(),
            "seed": _seed_field(),
        },
        "min_p": {
            "min_p": _probability_field(C.DEFAULT_MIN_P, "Minimum probability relative to the top token"),
            "min_keep": _min_keep_field(),
            "seed": _seed_field(),
        },
        "xtc": {
            "probability": _probability_field(C.DEFAULT_XTC_PROBABILITY, "Chance of removing top choices"),
            "threshold": _probability_field(C.DEFAULT_XTC_THRESHOLD, "Probability above which tokens are top choices"),
            "min_keep": _min_keep_field(),
            "seed": _seed_field(),
        },
        "typical_p": {
            "typ_p": {
                "type": float,
                "required": False,
                "default": C.DEFAULT_TYPICAL_P,
                "description": "Typical-p mass kept (1.0 disables)",
                "min_value": 0.0,
            },
            "min_keep": _min_keep_field(),
            "seed": _seed_field(),
        },
        "temperature": {
            "temperature": _temperature_field(),
            "seed": _seed_field(),
        },
        "mirostat_v1": _mirostat_schema(),
        "mirostat_v2": _mirostat_schema(),
    }

    DEFAULT_METHOD = "mirostat_v2"


def validate_method(method: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate a method mapping against the schema of its declared type.

    Args:
        method: ``{"type": name, **params}``; missing or empty selects the
            default method

    Returns:
        Validated mapping with every parameter of the method filled in

    Raises:
        ValidationError: If the type is unknown or a parameter is invalid
    """
    method = dict(method or {})
    method_type = method.pop("type", None) or ConfigSchema.DEFAULT_METHOD

    if method_type not in ConfigSchema.METHOD_SCHEMAS:
        raise ValidationError(
            f"Field 'root.method.type' must be one of {sorted(METHOD_TYPES.keys())}",
            details={"path": "root.method.type", "value": method_type},
        )

    validator = ConfigValidator(ConfigSchema.METHOD_SCHEMAS[method_type])
    validated = validator.validate(method, path=f"root.method[{method_type}]")
    return {"type": method_type, **validated}


def validate_config(config: Dict[str, Any], schema: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Validate configuration with environment variable resolution.

    Args:
        config: Configuration dictionary to validate
        schema: Optional custom schema (defaults to ConfigSchema.SCHEMA)

    Returns:
        Validated configuration with environment variables resolved and the
        method mapping completed with its defaults

    Raises:
        ValidationError: If validation fails
        ConfigurationError: If environment variable resolution fails
    """
    if schema is None:
        schema = ConfigSchema.SCHEMA

    resolver = EnvironmentVariableResolver()
    config = resolver.resolve(config)
    config = resolver.apply_overrides(config, schema, ConfigSchema.METHOD_ENV_SCHEMA)

    validated = ConfigValidator(schema).validate(config)
    validated["method"] = validate_method(validated.get("method"))
    return validated


def generate_config_template() -> str:
    """Generate a template configuration file with documentation."""
    template = """# Sampler Configuration Template
# Environment variables can be used with ${VAR_NAME} or ${VAR_NAME:default_value}

# Sampling method. Choose one type and set only that method's parameters:
#   greedy
#   dry          seed, multiplier, base, allowed_length, penalty_last_n
#   top_k        top_k, seed
#   top_p        top_p, min_keep, seed
#   min_p        min_p, min_keep, seed
#   xtc          probability, threshold, min_keep, seed
#   typical_p    typ_p, min_keep, seed
#   temperature  temperature, seed
#   mirostat_v1  seed, temperature, tau, eta
#   mirostat_v2  seed, temperature, tau, eta
method:
  type: mirostat_v2  # Environment variable: SAMPLER_METHOD
  seed: 1234         # Environment variable: SAMPLER_SEED
  temperature: 0.8
  tau: 5.0
  eta: 0.1

# Repetition penalties (applied for every method)
penalty_last_n: -1     # -1: no penalty window
# Environment variable: SAMPLER_PENALTY_LAST_N
penalty_repeat: 0.0
# Environment variable: SAMPLER_PENALTY_REPEAT
penalty_freq: 0.0
# Environment variable: SAMPLER_PENALTY_FREQ
penalty_present: 0.0
# Environment variable: SAMPLER_PENALTY_PRESENT

# Grammar constraint
grammar_path: null     # Path to a grammar file (null for none)
# Environment variable: SAMPLER_GRAMMAR_PATH
grammar_root: root
# Environment variable: SAMPLER_GRAMMAR_ROOT

# Logging
log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
# Environment variable: SAMPLER_LOG_LEVEL
"""
    return template


def dump_config(
    config: SamplerConfig,
    grammar_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> str:
    """
    Render a SamplerConfig as a YAML configuration document.

    Grammar text is not embedded; pass the path it was loaded from to keep it.

    Args:
        config: Configuration to render
        grammar_path: Path of the grammar file, if the config has a grammar
        log_level: Logging level to record; omitted (so the default applies) when None

    Returns:
        YAML text accepted by :func:`validate_config`
    """
    data = {
        "method": method_to_dict(config.method),
        "penalty_last_n": config.penalty_last_n,
        "penalty_repeat": config.penalty_repeat,
        "penalty_freq": config.penalty_freq,
        "penalty_present": config.penalty_present,
    }
    if config.grammar is not None:
        data["grammar_path"] = grammar_path
        data["grammar_root"] = config.grammar.grammar_root
    if log_level is not None:
        data["log_level"] = log_level

    text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
    if config.grammar is not None and grammar_path is None:
        text = "# grammar was configured but its source path is unknown\n" + text
    return text


def validate_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load and validate a configuration file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigurationError: If file cannot be loaded
        ValidationError: If validation fails
    """
    try:
        with open(config_path, 'r', encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            details={"path": os.fspath(config_path), "cause": type(e).__name__},
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e

    # An empty document means "all defaults"
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a YAML dictionary")

    return validate_config(config)
