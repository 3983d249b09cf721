from __future__ import annotations

from typing import Any

from petichat.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    return {
        "error": {"code": code, "message": message, "details": None},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }


def _response(description: str, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: _response("Unauthorized", "UNAUTHORIZED", "Autenticação necessária"),
    403: _response("Forbidden", "FORBIDDEN", "Permissão insuficiente"),
    404: _response("Not found", "NOT_FOUND", "Recurso não encontrado"),
    422: _response("Validation error", "VALIDATION_ERROR", "Dados inválidos"),
    500: _response("Internal error", "INTERNAL_ERROR", "Ocorreu um erro inesperado"),
}

AI_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    502: _response("AI provider failure", "PROVIDER_ERROR", "Falha no provedor de IA"),
    503: _response("AI capacity saturated", "SERVICE_BUSY", "Serviço de IA ocupado, tente novamente em instantes"),
}
