"""
Deterministic hashing and credential digest utilities.

Canonical JSON (sorted keys, no whitespace) is used for stored record
details and config checksums.  Passwords are stored as bcrypt
digests; session tokens are stored as SHA-256 digests.
"""

import hashlib
import json
import secrets
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import bcrypt

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72
TOKEN_BYTES = 32


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, there is no whitespace, and Decimal / datetime / UUID
    are rendered as strings.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_json_safe(data: dict[str, Any]) -> dict[str, Any]:
    """Round-trip ``data`` through canonical JSON so it can be stored in a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Derive a storable bcrypt password digest.

    bcrypt only reads the first 72 bytes of the password.
    """
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    """Check ``password`` against a digest from hash_password()."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, stored.encode("utf-8"))
    except ValueError:
        return False


def new_session_token() -> str:
    """Fresh URL-safe bearer token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 digest under which a bearer token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
