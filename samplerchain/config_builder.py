"""
Configuration building and management for sampler pipelines.

This module provides the ConfigBuilder class to handle loading YAML
configuration files, merging them with caller overrides and producing
SamplerConfig values ready for the pipeline builder.
"""

from typing import Any, Callable, Dict, Optional

from samplerchain.config_schema import ConfigSchema, validate_config, validate_config_file, validate_method
from samplerchain.config_validation import ConfigValidator
from samplerchain.errors import (
    ConfigurationError,
    SamplerChainError,
    config_logger as logger,
    log_exception,
    setup_logging,
)
from samplerchain.sampling.config import GrammarConfig, SamplerConfig
from samplerchain.sampling.constants import DEFAULT_GRAMMAR_ROOT
from samplerchain.sampling.methods import method_from_dict

METHOD_PREFIX = "method."


class ConfigBuilder:
    """Handles configuration loading and merging for sampler pipelines."""

    @staticmethod
    def load_yaml_config(config_path: str) -> Dict:
        """
        Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Dictionary containing the validated configuration

        Raises:
            ConfigurationError: If file cannot be loaded
            ValidationError: If validation fails
        """
        return validate_config_file(config_path)

    @staticmethod
    def merge_overrides(validated: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Apply caller overrides on top of a validated configuration.

        Top-level keys override fields directly. ``method`` replaces the whole
        method mapping, and ``method.<param>`` keys (including
        ``method.type``) override single method entries. ``None`` values are
        ignored.

        Returns:
            The merged configuration, validated again

        Raises:
            ConfigurationError: If an override names an unknown field
        """
        values = dict(validated)
        method = dict(values.get("method") or {})

        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key == "method":
                method = dict(value)
            elif key.startswith(METHOD_PREFIX):
                method[key[len(METHOD_PREFIX):]] = value
            elif key in ConfigSchema.SCHEMA:
                values[key] = value
            else:
                raise ConfigurationError(
                    f"Unknown configuration override: {key}",
                    details={"key": key, "available": sorted(ConfigSchema.SCHEMA.keys())},
                )
            logger.info(f"Override: {key} = {value}")

        values = ConfigValidator(ConfigSchema.SCHEMA).validate(values)
        values["method"] = validate_method(method)
        return values

    @staticmethod
    def build_sampler_config(validated: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> SamplerConfig:
        """
        Create a SamplerConfig from a validated configuration dictionary.

        The grammar file, when configured, is read here, so grammar errors
        surface before any pipeline is built.

        Args:
            validated: Configuration produced by :func:`validate_config`
            overrides: Optional overrides, see :meth:`merge_overrides`

        Returns:
            SamplerConfig instance

        Raises:
            InvalidPathError: If ``grammar_path`` is an empty string
            FileReadError: If the grammar file cannot be read
        """
        values = ConfigBuilder.merge_overrides(validated, overrides) if overrides else validated

        grammar = None
        grammar_path = values.get("grammar_path")
        if grammar_path is not None:
            grammar = GrammarConfig.from_file(grammar_path, grammar_root=values.get("grammar_root") or DEFAULT_GRAMMAR_ROOT)

        config = SamplerConfig(
            method=method_from_dict(values["method"]),
            penalty_last_n=values["penalty_last_n"],
            penalty_repeat=values["penalty_repeat"],
            penalty_freq=values["penalty_freq"],
            penalty_present=values["penalty_present"],
            grammar=grammar,
        )

        logger.info(f"Final configuration created: {config.to_dict()}")
        return config

    @staticmethod
    def configure_logging(values: Dict[str, Any]) -> None:
        """Apply the configured ``log_level`` to the package loggers."""
        log_level = values.get("log_level") or "INFO"
        setup_logging(log_level)
        logger.info(f"Logging configured with level {log_level}")

    @classmethod
    def _build(
        cls,
        load: Callable[[], Dict[str, Any]],
        overrides: Optional[Dict[str, Any]],
        configure_logging: bool,
    ) -> SamplerConfig:
        try:
            values = load()
            if overrides:
                values = cls.merge_overrides(values, overrides)
            if configure_logging:
                cls.configure_logging(values)
            return cls.build_sampler_config(values)
        except SamplerChainError as e:
            log_exception(e, logger, log_traceback=False)
            raise

    @classmethod
    def from_dict(
        cls,
        config: Dict[str, Any],
        overrides: Optional[Dict[str, Any]] = None,
        configure_logging: bool = True,
    ) -> SamplerConfig:
        """
        Validate an in-memory configuration mapping and build a SamplerConfig.

        Args:
            config: Configuration mapping in the YAML file layout
            overrides: Optional overrides, see :meth:`merge_overrides`
            configure_logging: Apply ``log_level`` through :func:`setup_logging`
        """
        return cls._build(lambda: validate_config(config), overrides, configure_logging)

    @classmethod
    def from_yaml(
        cls,
        config_path: str,
        overrides: Optional[Dict[str, Any]] = None,
        configure_logging: bool = True,
    ) -> SamplerConfig:
        """
        Factory method to create a SamplerConfig from a YAML file and overrides.

        Configuration and grammar errors are logged through
        :func:`log_exception` before they propagate.

        Args:
            config_path: Path to the YAML configuration file
            overrides: Optional overrides, see :meth:`merge_overrides`
            configure_logging: Apply ``log_level`` through :func:`setup_logging`

        Returns:
            SamplerConfig instance
        """
        return cls._build(lambda: cls.load_yaml_config(config_path), overrides, configure_logging)
