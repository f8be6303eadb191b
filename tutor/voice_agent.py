from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import httpx

from tutor.config import Settings
from tutor.context_builder import first_message, render_system_prompt
from tutor.schemas import LearningContext

logger = logging.getLogger(__name__)


class VoiceAgentError(RuntimeError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AgentCache:
    """File-backed cache of the ElevenLabs agent id, shared by every session."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Error reading agent cache %s", self.path)
            return None
        if not isinstance(data, dict):
            return None
        return data.get("agentId") or None

    def set(self, agent_id: str) -> None:
        payload = {"agentId": agent_id, "createdAt": _now_iso()}
        try:
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Error caching agent id in %s", self.path)

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Error clearing agent cache %s", self.path)


class VoiceAgentService:
    """
    ElevenLabs ConvAI agent lifecycle: create once and cache the id, refresh its
    prompt with the learning context, and mint conversation tokens for clients
    without exposing the ElevenLabs API key.
    """

    def __init__(
        self,
        settings: Settings,
        cache: AgentCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.api_key = settings.ELEVENLABS_API_KEY.strip()
        self.base_url = settings.ELEVENLABS_API_URL.rstrip("/")
        self.cache = cache or AgentCache(settings.AGENT_CACHE_PATH)
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=15,
            headers={"xi-api-key": self.api_key},
            transport=self._transport,
        )

    def _prompt_config(self, ctx: LearningContext | None) -> dict:
        return {"prompt": render_system_prompt(ctx), "llm": self.settings.ELEVENLABS_AGENT_LLM}

    async def create_agent(self, client: httpx.AsyncClient, ctx: LearningContext | None) -> str:
        body = {
            "name": self.settings.AGENT_NAME,
            "conversation_config": {
                "tts": {
                    "voice_id": self.settings.ELEVENLABS_VOICE_ID,
                    "model_id": self.settings.ELEVENLABS_TTS_MODEL,
                },
                "agent": {
                    "first_message": first_message(ctx),
                    "prompt": self._prompt_config(ctx),
                    "language": self.settings.AGENT_LANGUAGE,
                },
            },
        }
        r = await client.post("/v1/convai/agents/create", json=body)
        if r.status_code >= 400:
            raise VoiceAgentError(f"Failed to create agent: {r.status_code} {r.text}")
        agent_id = r.json().get("agent_id")
        if not agent_id:
            raise VoiceAgentError(f"ElevenLabs response missing agent_id: {r.text}")
        return agent_id

    async def update_agent(self, client: httpx.AsyncClient, agent_id: str, ctx: LearningContext) -> None:
        body = {"conversation_config": {"agent": {"prompt": self._prompt_config(ctx)}}}
        r = await client.patch(f"/v1/convai/agents/{agent_id}", json=body)
        if r.status_code >= 400:
            # The agent keeps working with its previous prompt.
            logger.error("Failed to update agent %s: %s %s", agent_id, r.status_code, r.text)

    async def get_conversation_token(self, client: httpx.AsyncClient, agent_id: str) -> str:
        r = await client.get("/v1/convai/conversation/token", params={"agent_id": agent_id})
        if r.status_code >= 400:
            raise VoiceAgentError(f"Failed to get conversation token: {r.status_code} {r.text}")
        token = r.json().get("token")
        if not token:
            raise VoiceAgentError(f"ElevenLabs response missing token: {r.text}")
        return token

    async def start_session(self, ctx: LearningContext | None) -> tuple[str, str]:
        if not self.configured:
            raise VoiceAgentError("ELEVENLABS_API_KEY not configured")

        try:
            async with self._client() as client:
                agent_id = self.cache.get()
                if not agent_id:
                    logger.info("Creating new tutor agent...")
                    agent_id = await self.create_agent(client, ctx)
                    self.cache.set(agent_id)
                    logger.info("Agent created with id %s", agent_id)
                elif ctx is not None:
                    logger.info("Updating agent %s with learning context", agent_id)
                    await self.update_agent(client, agent_id, ctx)

                token = await self.get_conversation_token(client, agent_id)
        except httpx.HTTPError as e:
            raise VoiceAgentError(f"ElevenLabs request failed: {e}") from e
        return agent_id, token
