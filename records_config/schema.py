"""
Records configuration schema.

Defines the typed form of ``records.yaml``: runtime settings for the
records office plus the record type catalogue.  The loader parses YAML into
these frozen types; the validator checks them before they are handed out by
``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from records_kernel.domain.record_types import RecordTypeRegistry, RecordTypeSchema
from records_kernel.exceptions import RecordsKernelError


class ConfigError(RecordsKernelError):
    """Configuration could not be loaded or failed validation."""

    code: str = "CONFIG_ERROR"

    def __init__(self, message: str, errors: tuple[str, ...] = ()):
        self.errors = errors
        super().__init__(message)


@dataclass(frozen=True)
class RecordsConfig:
    """
    Runtime configuration for the records office.

    Contract:
        Frozen.  ``record_types`` is the full catalogue; ``registry()``
        builds the lookup the kernel services consume.
    """

    config_id: str
    version: int
    database_url: str
    poll_interval_seconds: int
    timezone: str
    tracking_sequence: str
    session_ttl_minutes: int
    bootstrap_admin_username: str
    default_designations: tuple[str, ...] = ()
    record_types: tuple[RecordTypeSchema, ...] = ()
    checksum: str = field(default="", compare=False)

    def registry(self) -> RecordTypeRegistry:
        return RecordTypeRegistry(self.record_types)

    def record_type(self, key: str) -> RecordTypeSchema:
        """Record type by name or collection name."""
        return self.registry().get(key)
