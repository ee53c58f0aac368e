"""
Configuration Validator (``records_config.validator``).

Responsibility
--------------
Checks a parsed ``RecordsConfig`` for structural problems before it is
handed to the kernel.

Invariants enforced
-------------------
* Record type names, collections and prefixes are unique.
* Prefixes are 1-3 uppercase letters.
* ``tracking_sequence`` is a known scope.
* ``poll_interval_seconds`` and ``session_ttl_minutes`` are positive.
* ``timezone`` is a known IANA zone.
* Role fields (name / office / amount) of a type are among its fields.

Failure modes
-------------
* Validation errors -> configuration MUST NOT be used.
* Validation warnings -> configuration may be used but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from records_config.schema import RecordsConfig
from records_kernel.domain.record_types import PREFIX_PATTERN
from records_kernel.services.tracking_service import SEQUENCE_SCOPES


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_config(config: RecordsConfig) -> ConfigValidationResult:
    """Validate a configuration; a result with errors MUST NOT be used."""
    result = ConfigValidationResult()

    _validate_settings(config, result)
    _validate_uniqueness(config, result)
    _validate_prefixes(config, result)
    _validate_field_roles(config, result)

    return result


def _validate_settings(config: RecordsConfig, result: ConfigValidationResult) -> None:
    if config.tracking_sequence not in SEQUENCE_SCOPES:
        result.add_error(
            f"Unknown tracking_sequence '{config.tracking_sequence}' "
            f"(expected one of {', '.join(SEQUENCE_SCOPES)})"
        )
    if config.poll_interval_seconds <= 0:
        result.add_error("poll_interval_seconds must be positive")
    if config.session_ttl_minutes <= 0:
        result.add_error("session_ttl_minutes must be positive")
    try:
        ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        result.add_error(f"Unknown timezone '{config.timezone}'")
    if not config.record_types:
        result.add_error("No record types configured")
    if not config.default_designations:
        result.add_warning("No default designations configured")


def _validate_uniqueness(config: RecordsConfig, result: ConfigValidationResult) -> None:
    for attribute in ("name", "collection", "prefix"):
        seen: set[str] = set()
        for record_type in config.record_types:
            value = getattr(record_type, attribute)
            if value in seen:
                result.add_error(
                    f"Duplicate record type {attribute}: '{value}' appears more than once"
                )
            seen.add(value)


def _validate_prefixes(config: RecordsConfig, result: ConfigValidationResult) -> None:
    for record_type in config.record_types:
        if not PREFIX_PATTERN.match(record_type.prefix or ""):
            result.add_error(
                f"Record type '{record_type.name}' prefix '{record_type.prefix}' "
                "must be 1-3 uppercase letters"
            )


def _validate_field_roles(config: RecordsConfig, result: ConfigValidationResult) -> None:
    for record_type in config.record_types:
        known = record_type.known_fields
        if not record_type.required_fields:
            result.add_warning(f"Record type '{record_type.name}' has no required fields")
        for role in ("name_field", "office_field", "amount_field"):
            value = getattr(record_type, role)
            if value is not None and value not in known:
                result.add_error(
                    f"Record type '{record_type.name}' {role} '{value}' "
                    "is not one of its fields"
                )
        for numeric in record_type.numeric_fields:
            if numeric not in known:
                result.add_error(
                    f"Record type '{record_type.name}' numeric field '{numeric}' "
                    "is not one of its fields"
                )
