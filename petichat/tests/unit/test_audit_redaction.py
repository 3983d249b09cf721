from __future__ import annotations

from petichat.services.audit import estimate_tokens, sanitize_metadata


def test_confidential_fields_are_redacted() -> None:
    sanitized = sanitize_metadata(
        {
            "action": "formalize",
            "text": "O réu, João, deve R$ 10.000,00",
            "text_length": 31,
            "nested": {"facts_description": "segredo", "Authorization": "Bearer x", "case_id": "case-1"},
            "items": [{"api_key": "pck_1"}, {"prompt_tokens": 12}],
        }
    )
    assert sanitized == {
        "action": "formalize",
        "text": "[REDACTED]",
        "text_length": 31,
        "nested": {"facts_description": "[REDACTED]", "Authorization": "[REDACTED]", "case_id": "case-1"},
        "items": [{"api_key": "[REDACTED]"}, {"prompt_tokens": 12}],
    }


def test_token_estimate() -> None:
    assert estimate_tokens(400) == 100
    assert estimate_tokens(-3) == 0
