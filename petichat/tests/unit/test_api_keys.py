from __future__ import annotations

import pytest

from petichat.services.auth.api_keys import (
    generate_api_key,
    hash_api_key,
    normalize_role,
    role_allows,
)


def test_generated_key_shape() -> None:
    key_id, raw_key, prefix, key_hash = generate_api_key(key_id="abc123")
    assert key_id == "abc123"
    assert raw_key.startswith("pck_abc123_")
    assert prefix == raw_key[:12]
    assert key_hash == hash_api_key(raw_key)
    assert raw_key not in key_hash


def test_roles_are_ordered() -> None:
    assert role_allows(role="admin", minimum_role="editor")
    assert role_allows(role="editor", minimum_role="editor")
    assert not role_allows(role="reader", minimum_role="editor")
    assert not role_allows(role="intern", minimum_role="reader")


def test_normalize_role() -> None:
    assert normalize_role(" Editor ") == "editor"
    with pytest.raises(ValueError):
        normalize_role("owner")
