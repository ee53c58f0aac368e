"""
Configuration Loader (``records_config.loader``).

Responsibility
--------------
Loads ``records.yaml`` and parses it into the typed ``RecordsConfig``.
Runtime callers use ``records_config.get_active_config()`` instead of
calling this module directly.

Invariants enforced
-------------------
* Missing required keys raise ConfigError naming the key; there are no
  silent defaults for the record type catalogue.
* Environment overrides are applied to the raw mapping BEFORE parsing, so
  the checksum reflects the effective configuration.
* ``compute_checksum`` is a deterministic SHA-256 of canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing / malformed keys  -> ``ConfigError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from records_config.schema import ConfigError, RecordsConfig
from records_kernel.domain.record_types import RecordTypeSchema
from records_kernel.utils.hashing import hash_payload

# Environment variable -> (config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "RECORDS_DATABASE_URL": ("database_url", str),
    "RECORDS_POLL_INTERVAL_SECONDS": ("poll_interval_seconds", int),
    "RECORDS_TIMEZONE": ("timezone", str),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with RECORDS_* environment overrides applied."""
    merged = dict(data)
    for env_name, (key, parser) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            merged[key] = parser(raw)
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {env_name}: {raw!r}") from exc
    return merged


def _str_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_record_type(data: Mapping[str, Any]) -> RecordTypeSchema:
    """Parse one entry of the ``record_types`` list."""
    try:
        return RecordTypeSchema(
            name=data["name"],
            collection=data["collection"],
            prefix=data["prefix"],
            required_fields=_str_tuple(data.get("required_fields")),
            optional_fields=_str_tuple(data.get("optional_fields")),
            numeric_fields=_str_tuple(data.get("numeric_fields")),
            name_field=data.get("name_field", "fullName"),
            office_field=data.get("office_field"),
            amount_field=data.get("amount_field"),
            remarks_required_on_reject=bool(data.get("remarks_required_on_reject", True)),
            remarks_required_on_time_out=bool(
                data.get("remarks_required_on_time_out", True)
            ),
            admin_override=bool(data.get("admin_override", False)),
        )
    except KeyError as exc:
        raise ConfigError(
            f"Record type {data.get('name', '?')!r} is missing key {exc.args[0]!r}"
        ) from exc


def parse_config(data: Mapping[str, Any], checksum: str = "") -> RecordsConfig:
    """Parse a flattened configuration mapping (see flatten_settings)."""
    try:
        return RecordsConfig(
            config_id=str(data.get("config_id", "records")),
            version=int(data.get("version", 1)),
            database_url=str(data["database_url"]),
            poll_interval_seconds=int(data["poll_interval_seconds"]),
            timezone=str(data["timezone"]),
            tracking_sequence=str(data.get("tracking_sequence", "cumulative")),
            session_ttl_minutes=int(data.get("session_ttl_minutes", 480)),
            bootstrap_admin_username=str(data.get("bootstrap_admin_username", "admin")),
            default_designations=_str_tuple(data.get("default_designations")),
            record_types=tuple(
                parse_record_type(entry) for entry in data.get("record_types") or ()
            ),
            checksum=checksum,
        )
    except KeyError as exc:
        raise ConfigError(f"Configuration is missing key {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Malformed configuration: {exc}") from exc


def flatten_settings(data: Mapping[str, Any]) -> dict[str, Any]:
    """Lift ``settings:`` keys to the top level so overrides can address them."""
    flat = {k: v for k, v in data.items() if k != "settings"}
    flat.update(data.get("settings") or {})
    return flat


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)


def load_config(
    path: Path, environ: Mapping[str, str] | None = None
) -> RecordsConfig:
    """Load, apply environment overrides and parse a configuration file."""
    raw = flatten_settings(load_yaml_file(path))
    effective = apply_env_overrides(raw, environ or {})
    return parse_config(effective, checksum=compute_checksum(effective))
