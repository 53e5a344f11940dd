"""Configuration file support for vcf-pca."""

import logging
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_OUTPUT_TYPES = {"v", "z", "b", "u"}


@dataclass
class PCAConfig:
    """Parameters of a PCA or projection run."""

    npca: int = 20
    exact: bool = False
    covdef: int = 1
    extra: int = 100
    iterations: int = 10
    maf: float = 0.0
    thin: int = 1
    assume_homref: bool = False
    seed: int | None = None
    output_type: str = "v"
    log_level: str = "INFO"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


def _require_int(config_dict: dict[str, Any], key: str, minimum: int) -> None:
    value = config_dict[key]
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigValidationError(f"{key} must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise ConfigValidationError(f"{key} must be at least {minimum}, got {value}")


def validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values.

    Raises:
        ConfigValidationError: If any configuration value is invalid.
    """
    for key, minimum in (("npca", 1), ("extra", 0), ("iterations", 0), ("thin", 1)):
        if key in config_dict:
            _require_int(config_dict, key, minimum)

    if "covdef" in config_dict:
        covdef = config_dict["covdef"]
        if covdef not in (0, 1, 2) or isinstance(covdef, bool):
            raise ConfigValidationError(f"covdef must be 0, 1 or 2, got {covdef!r}")

    if "maf" in config_dict:
        maf = config_dict["maf"]
        if not isinstance(maf, int | float) or isinstance(maf, bool):
            raise ConfigValidationError(f"maf must be a number, got {type(maf).__name__}")
        if not 0.0 <= maf <= 0.5:
            raise ConfigValidationError(f"maf must be within [0, 0.5], got {maf}")

    for key in ("exact", "assume_homref"):
        if key in config_dict and not isinstance(config_dict[key], bool):
            raise ConfigValidationError(
                f"{key} must be a boolean, got {type(config_dict[key]).__name__}"
            )

    if config_dict.get("seed") is not None:
        _require_int(config_dict, "seed", 0)

    if "output_type" in config_dict:
        output_type = config_dict["output_type"]
        if output_type not in VALID_OUTPUT_TYPES:
            raise ConfigValidationError(
                f"output_type must be one of {sorted(VALID_OUTPUT_TYPES)}, got '{output_type}'"
            )

    if "log_level" in config_dict:
        log_level = config_dict["log_level"]
        if not isinstance(log_level, str):
            raise ConfigValidationError(
                f"log_level must be a string, got {type(log_level).__name__}"
            )
        if log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{log_level}'"
            )


def load_config(
    config_path: Path | None = None, overrides: dict[str, Any] | None = None
) -> PCAConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML configuration file, or None for defaults.
        overrides: Optional dict of values to override loaded config. None
            values are ignored.

    Returns:
        PCAConfig instance with loaded values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If any configuration value is invalid.
    """
    config_dict: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        config_dict = toml_data.get("vcf_pca", {})

    if overrides:
        config_dict.update({k: v for k, v in overrides.items() if v is not None})

    validate_config(config_dict)

    valid_fields = {f.name for f in fields(PCAConfig)}
    unknown = sorted(set(config_dict) - valid_fields)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

    return PCAConfig(**filtered_config)
