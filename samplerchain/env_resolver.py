"""
Environment variable support for sampler configuration files.

Two mechanisms are provided:

* ``${VAR}`` / ``${VAR:default}`` references inside configuration values.
  The substituted text is read back as a YAML scalar, so ``seed: ${SEED:7}``
  yields the int 7 exactly as ``seed: 7`` would.
* ``SAMPLER_*`` variables named by the schema's ``env_var`` entries, which
  override top-level fields and the method mapping.
"""

import os
import re
from typing import Any, Dict, Mapping, Optional

import yaml

from samplerchain.errors import ConfigurationError, config_logger as logger

SCALAR_TYPES = (str, int, float, bool)


class EnvironmentVariableResolver:
    """Resolves environment references and overrides in configuration mappings."""

    # ${NAME} or ${NAME:default}; the default may itself contain ':'
    REFERENCE_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def resolve(self, value: Any) -> Any:
        """
        Replace environment references in a configuration value.

        Args:
            value: A scalar or a (nested) dict/list of values

        Returns:
            Value with every reference substituted

        Raises:
            ConfigurationError: If a referenced variable is unset and has no
                default
        """
        if isinstance(value, str):
            return self._resolve_string(value)
        elif isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.resolve(item) for item in value]
        return value

    def _resolve_string(self, value: str) -> Any:
        if not self.REFERENCE_PATTERN.search(value):
            return value

        def substitute(match):
            name, default = match.group(1), match.group(2)
            if name in self.environ:
                return self.environ[name]
            if default is not None:
                return default
            raise ConfigurationError(
                f"Environment variable '{name}' not found",
                details={"variable": name, "value": value}
            )

        return self.parse_scalar(self.REFERENCE_PATTERN.sub(substitute, value))

    @staticmethod
    def parse_scalar(text: str) -> Any:
        """Read substituted text as a YAML scalar, falling back to the text itself."""
        if not text:
            return text
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError:
            return text
        if parsed is None or isinstance(parsed, SCALAR_TYPES):
            return parsed
        return text

    def overrides(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Collect typed values for every schema field whose ``env_var`` is set.

        Raises:
            ConfigurationError: If a variable cannot be converted to the
                field's type
        """
        result = {}
        for key, field_schema in schema.items():
            env_var = field_schema.get("env_var")
            if not env_var or env_var not in self.environ:
                continue

            raw = self.environ[env_var]
            expected_type = field_schema["type"]
            try:
                result[key] = expected_type(raw) if expected_type in (int, float) else raw
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for environment variable {env_var}: {raw}",
                    details={"env_var": env_var, "value": raw, "expected_type": expected_type.__name__}
                ) from e

            logger.info(f"Applied environment override: {key} = {result[key]} (from {env_var})")
        return result

    def apply_overrides(
        self,
        config: Dict[str, Any],
        schema: Dict[str, Any],
        method_schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Apply environment overrides to a configuration mapping.

        Args:
            config: Configuration with references already resolved
            schema: Top-level schema
            method_schema: Schema of the method fields that can be overridden

        Returns:
            New mapping; ``config`` is left untouched
        """
        result = dict(config)
        result.update(self.overrides(schema))

        method_overrides = self.overrides(method_schema)
        if method_overrides:
            method = result.get("method")
            if method is None:
                method = {}
            if isinstance(method, dict):
                result["method"] = {**method, **method_overrides}
        return result
