from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError

from tutor.config import Settings
from tutor.gemini_client import GeminiClient
from tutor.prompts import CURRICULUM_RESPONSE_SCHEMA, CURRICULUM_SYSTEM, CURRICULUM_USER
from tutor.schemas import GeneratedCurriculum

logger = logging.getLogger(__name__)

PROMPT_TEXT_CHARS = 30_000
PDF_CONTENT_CHARS = 50_000


class CurriculumGenerationError(RuntimeError):
    pass


class JsonModel(Protocol):
    def generate_json(self, *, system: str, user: str, schema: dict[str, Any]) -> dict[str, Any]: ...


class CurriculumGenerator:
    def __init__(self, settings: Settings, client: JsonModel | None = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> JsonModel:
        # Built lazily so a missing Gemini config surfaces as a generation failure.
        if self._client is None:
            self._client = GeminiClient(self.settings)
        return self._client

    def generate(self, pdf_text: str, document_name: str, document_id: str) -> GeneratedCurriculum:
        text = (pdf_text or "").strip()
        if not text:
            raise ValueError("No text content provided")

        user = CURRICULUM_USER.format(document_text=pdf_text[:PROMPT_TEXT_CHARS])
        try:
            data = self.client.generate_json(system=CURRICULUM_SYSTEM, user=user, schema=CURRICULUM_RESPONSE_SCHEMA)
        except Exception as e:
            raise CurriculumGenerationError(f"Failed to generate curriculum: {e}") from e

        data = dict(data)
        data["documentId"] = document_id
        data["documentName"] = document_name
        data["pdfContent"] = pdf_text[:PDF_CONTENT_CHARS]
        try:
            curriculum = GeneratedCurriculum.model_validate(data)
        except ValidationError as e:
            raise CurriculumGenerationError(f"Model returned a malformed curriculum: {e}") from e

        logger.info("Generated curriculum %r for document %r", curriculum.title, document_name)
        return curriculum
