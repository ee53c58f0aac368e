"""Utility modules for the records kernel."""

from records_kernel.utils.hashing import (
    canonicalize_json,
    hash_password,
    hash_payload,
    hash_token,
    new_session_token,
    to_json_safe,
    verify_password,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_password",
    "verify_password",
    "new_session_token",
    "hash_token",
    "to_json_safe",
]
