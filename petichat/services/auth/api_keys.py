from __future__ import annotations

import hashlib
import secrets
from uuid import uuid4


# Assistants read, lawyers edit, the firm owner administers.
ROLE_ORDER: dict[str, int] = {
    "reader": 1,
    "editor": 2,
    "admin": 3,
}


def normalize_role(role: str) -> str:
    normalized = role.strip().lower()
    if normalized not in ROLE_ORDER:
        raise ValueError(f"Unsupported role: {role}")
    return normalized


def role_allows(*, role: str, minimum_role: str) -> bool:
    return ROLE_ORDER.get(role, 0) >= ROLE_ORDER.get(minimum_role, 0)


def hash_api_key(raw_key: str) -> str:
    # Only the SHA-256 digest is stored.
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key(*, key_id: str | None = None) -> tuple[str, str, str, str]:
    # Returns (key_id, raw_key, key_prefix, key_hash); the raw key is shown once.
    resolved_id = key_id or uuid4().hex
    secret = secrets.token_urlsafe(32)
    raw_key = f"pck_{resolved_id}_{secret}"
    return resolved_id, raw_key, raw_key[:12], hash_api_key(raw_key)
