from __future__ import annotations

import asyncio
import logging
import time

from petichat.core.config import get_settings
from petichat.core.errors import ProviderConfigError, ProviderError
from petichat.providers.ai.prompted import PromptedAIProvider
from petichat.services.telemetry import record_external_call


logger = logging.getLogger(__name__)


class GeminiVertexProvider(PromptedAIProvider):
    name = "gemini"

    def __init__(self) -> None:
        self._settings = get_settings()
        self.model = self._settings.gemini_model
        self._initialized = False

    def _validate_config(self) -> tuple[str, str, str]:
        # Fail with a clear diagnostic instead of confusing downstream SDK errors.
        project = self._settings.google_cloud_project
        location = self._settings.google_cloud_location
        model = self._settings.gemini_model
        missing = []
        if not project:
            missing.append("GOOGLE_CLOUD_PROJECT")
        if not location:
            missing.append("GOOGLE_CLOUD_LOCATION")
        if not model:
            missing.append("GEMINI_MODEL")
        if missing:
            raise ProviderConfigError(f"Vertex config missing: set {', '.join(missing)} in .env.")
        return project, location, model

    async def _complete(self, system: str, prompt: str, *, json_mode: bool) -> str:
        project, location, model_name = self._validate_config()
        try:
            from vertexai import init
            from vertexai.generative_models import GenerationConfig, GenerativeModel
            from google.auth.exceptions import DefaultCredentialsError, RefreshError
            from google.api_core.exceptions import PermissionDenied, Unauthenticated
        except ImportError as exc:  # pragma: no cover - import errors are environment-specific
            raise ProviderConfigError("Vertex AI SDK not available. Install google-cloud-aiplatform.") from exc

        start = time.monotonic()
        try:
            if not self._initialized:
                init(project=project, location=location)
                self._initialized = True
            model = GenerativeModel(model_name, system_instruction=system)
            config = GenerationConfig(
                temperature=0.3,
                response_mime_type="application/json" if json_mode else "text/plain",
            )
            response = await asyncio.wait_for(
                model.generate_content_async(prompt, generation_config=config),
                timeout=self._settings.ai_timeout_ms / 1000.0,
            )
        except (DefaultCredentialsError, RefreshError, PermissionDenied, Unauthenticated) as exc:
            record_external_call(integration="ai.gemini", latency_ms=(time.monotonic() - start) * 1000.0, success=False)
            logger.warning("vertex_auth_error model=%s", model_name)
            raise ProviderError("Vertex auth error: run `gcloud auth application-default login`.") from exc
        except asyncio.TimeoutError as exc:
            record_external_call(integration="ai.gemini", latency_ms=(time.monotonic() - start) * 1000.0, success=False)
            logger.warning("vertex_timeout model=%s", model_name)
            raise ProviderError("Tempo esgotado aguardando o provedor de IA") from exc
        except Exception as exc:  # noqa: BLE001 - SDK raises a wide range of transport errors
            record_external_call(integration="ai.gemini", latency_ms=(time.monotonic() - start) * 1000.0, success=False)
            logger.error("vertex_request_error model=%s", model_name)
            raise ProviderError("Vertex AI request failed. Check credentials and model access.") from exc

        record_external_call(integration="ai.gemini", latency_ms=(time.monotonic() - start) * 1000.0, success=True)
        return getattr(response, "text", "") or ""
