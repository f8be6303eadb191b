from __future__ import annotations

import json
import logging
from typing import Any

from google import genai
from google.genai import types

from tutor.config import Settings

logger = logging.getLogger(__name__)

FALLBACK_MODELS = ["gemini-2.5-flash", "gemini-flash-latest", "gemini-2.0-flash"]


def _is_model_not_found(exc: Exception) -> bool:
    msg = str(exc)
    return "NOT_FOUND" in msg and ("not found" in msg or "Publisher Model" in msg or "models/" in msg)


class GeminiClient:
    """
    Supports two modes:
    - Vertex AI mode (recommended on Cloud Run): GOOGLE_CLOUD_PROJECT + GOOGLE_CLOUD_LOCATION
    - API key mode (local/dev): GOOGLE_API_KEY
    """

    def __init__(self, settings: Settings) -> None:
        self.model = settings.GEMINI_MODEL

        if settings.GOOGLE_API_KEY:
            self.client = genai.Client(api_key=settings.GOOGLE_API_KEY)
        elif settings.GOOGLE_CLOUD_PROJECT:
            # Uses ADC (service account) on Cloud Run
            self.client = genai.Client(
                vertexai=True,
                project=settings.GOOGLE_CLOUD_PROJECT,
                location=settings.GOOGLE_CLOUD_LOCATION,
            )
        else:
            raise RuntimeError(
                "Missing config: set GOOGLE_API_KEY (local) or GOOGLE_CLOUD_PROJECT (+ optional GOOGLE_CLOUD_LOCATION) (Vertex/Cloud Run)."
            )

    def generate_json(self, *, system: str, user: str, schema: dict[str, Any]) -> dict[str, Any]:
        candidates = [self.model] + [m for m in FALLBACK_MODELS if m != self.model]

        last_err: Exception | None = None
        resp = None
        for m in candidates:
            try:
                resp = self.client.models.generate_content(
                    model=m,
                    contents=[
                        types.Content(role="user", parts=[types.Part(text=user)]),
                    ],
                    config=types.GenerateContentConfig(
                        system_instruction=system,
                        response_mime_type="application/json",
                        response_schema=schema,
                        temperature=0.4,
                    ),
                )
                break
            except Exception as e:
                last_err = e
                # Only retry on model lookup/access style failures.
                if _is_model_not_found(e):
                    logger.warning("Gemini model %s unavailable, trying next candidate", m)
                    continue
                raise

        if resp is None:
            raise RuntimeError(f"All model candidates failed. Last error: {last_err}")

        parsed = getattr(resp, "parsed", None)
        if isinstance(parsed, dict):
            return parsed

        text = (resp.text or "").strip()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Model did not return valid JSON. Raw: {text[:500]}") from e
        if not isinstance(data, dict):
            raise RuntimeError(f"Model returned JSON that is not an object. Raw: {text[:500]}")
        return data
