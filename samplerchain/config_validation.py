"""
Configuration validation utilities.

This module provides validation logic for configuration values and schemas.
"""

from typing import Any, Dict

from samplerchain.errors import ValidationError, config_logger as logger


class ConfigValidator:
    """Validates configuration against schema."""

    def __init__(self, schema: Dict[str, Any]):
        self.schema = schema

    def validate(self, config: Dict[str, Any], path: str = "root") -> Dict[str, Any]:
        """
        Validate configuration against schema.

        Args:
            config: Configuration to validate
            path: Dotted location of ``config`` used in error messages

        Returns:
            Validated and normalized configuration

        Raises:
            ValidationError: If validation fails
        """
        try:
            validated_config = self._validate_dict(config, self.schema, path)
        except ValidationError:
            raise
        except Exception as e:
            raise ValidationError(f"Configuration validation failed: {str(e)}") from e

        logger.debug(f"Configuration validation successful for '{path}'")
        return validated_config

    def _validate_dict(self, config: Dict[str, Any], schema: Dict[str, Any], path: str) -> Dict[str, Any]:
        result = {}

        for key, field_schema in schema.items():
            if field_schema.get("required", False) and key not in config:
                raise ValidationError(
                    f"Required field '{key}' missing",
                    details={"path": path, "field": key}
                )

        for key, field_schema in schema.items():
            if key in config:
                result[key] = self._validate_field(config[key], field_schema, f"{path}.{key}")
            elif "default" in field_schema:
                result[key] = field_schema["default"]

        unknown_fields = set(config.keys()) - set(schema.keys())
        if unknown_fields:
            logger.warning(f"Unknown configuration fields at '{path}': {sorted(unknown_fields)}")

        return result

    def _validate_field(self, value: Any, field_schema: Dict[str, Any], path: str) -> Any:
        expected_type = field_schema["type"]

        # Optional fields whose default is None accept an explicit None
        if value is None:
            if field_schema.get("default") is None and not field_schema.get("required", False):
                return None
            raise ValidationError(
                f"Field '{path}' must not be null",
                details={"path": path}
            )

        if expected_type == dict and not isinstance(value, dict):
            raise ValidationError(
                f"Field '{path}' must be a dictionary",
                details={"path": path, "value": value, "expected_type": "dict"}
            )
        elif expected_type == float and isinstance(value, int) and not isinstance(value, bool):
            # YAML reads "5" as an int; accept it for float fields
            value = float(value)
        elif expected_type == int and isinstance(value, bool):
            raise ValidationError(
                f"Field '{path}' must be of type int",
                details={"path": path, "value": value, "expected_type": "int"}
            )
        elif expected_type in (str, int, float, bool) and not isinstance(value, expected_type):
            raise ValidationError(
                f"Field '{path}' must be of type {expected_type.__name__}",
                details={"path": path, "value": value, "expected_type": expected_type.__name__}
            )

        if "choices" in field_schema and value not in field_schema["choices"]:
            raise ValidationError(
                f"Field '{path}' must be one of {field_schema['choices']}",
                details={"path": path, "value": value, "choices": field_schema["choices"]}
            )

        if expected_type in (int, float):
            if "min_value" in field_schema and value < field_schema["min_value"]:
                raise ValidationError(
                    f"Field '{path}' must be >= {field_schema['min_value']}",
                    details={"path": path, "value": value, "min_value": field_schema["min_value"]}
                )

            if "max_value" in field_schema and value > field_schema["max_value"]:
                raise ValidationError(
                    f"Field '{path}' must be <= {field_schema['max_value']}",
                    details={"path": path, "value": value, "max_value": field_schema["max_value"]}
                )

        return value
