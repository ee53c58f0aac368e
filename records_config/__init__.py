"""
records_config -- single public entrypoint for records office configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or RECORDS_* environment variables directly.

Architecture position:
    Configuration -- YAML-driven, validated before use.  Sits above
    ``records_kernel`` and below ``records_services`` / the CLI.  The kernel
    MUST NEVER import from ``records_config``; it only receives the
    ``RecordTypeRegistry`` and plain settings built from it.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation: a configuration with errors is never returned.
    - Deterministic checksum: same YAML plus overrides gives the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ConfigError`` -- malformed or invalid configuration.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECORDS_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every record operation to the configuration that
    governed it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from records_config.loader import compute_checksum, load_config
from records_config.schema import ConfigError, RecordsConfig
from records_config.validator import ConfigValidationResult, validate_config

_logger = logging.getLogger("records_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "records.yaml"

__all__ = [
    "ConfigError",
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "RecordsConfig",
    "compute_checksum",
    "get_active_config",
    "validate_config",
]


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> RecordsConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file.  Defaults to the packaged
            ``records_config/defaults/records.yaml``.
        environ: Environment used for RECORDS_* overrides.  Defaults to
            ``os.environ``.

    Returns:
        A validated ``RecordsConfig``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If the configuration is malformed or fails validation.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path, os.environ if environ is None else environ)

    validation = validate_config(config)
    if not validation.is_valid:
        raise ConfigError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors),
            errors=tuple(validation.errors),
        )
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"warning": warning})

    _logger.info(
        "RECORDS_CONFIG_TRACE",
        extra={
            "trace_type": "RECORDS_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "record_type_count": len(config.record_types),
            "tracking_sequence": config.tracking_sequence,
        },
    )
    return config
